#!/usr/bin/env python3
"""
CIS Kubernetes benchmark report model.

These dataclasses hold the decoded kube-bench JSON output. Field names follow
the kube-bench JSON schema; nothing is added beyond the scanner metadata and
the summary totals computed from the sections.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class ScannerInfo:
    """Identifies the tool that produced the report."""
    name: str = "kube-bench"
    vendor: str = "Aqua Security"
    version: str = "latest"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "vendor": self.vendor, "version": self.version}


@dataclass
class CISKubeBenchSummary:
    """Totals across all sections."""
    pass_count: int = 0
    info_count: int = 0
    warn_count: int = 0
    fail_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passCount": self.pass_count,
            "infoCount": self.info_count,
            "warnCount": self.warn_count,
            "failCount": self.fail_count,
        }


@dataclass
class CISKubeBenchResult:
    """A single check, e.g. 1.1.1."""
    test_number: str
    test_desc: str
    remediation: str
    status: str  # PASS, FAIL, WARN or INFO
    scored: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_number": self.test_number,
            "test_desc": self.test_desc,
            "remediation": self.remediation,
            "status": self.status,
            "scored": self.scored,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CISKubeBenchResult":
        return cls(
            test_number=str(data["test_number"]),
            test_desc=data.get("test_desc", ""),
            remediation=data.get("remediation", ""),
            status=data["status"],
            scored=bool(data.get("scored", False)),
        )


@dataclass
class CISKubeBenchTests:
    """A group of checks within a section, e.g. 1.1 Master Node Configuration Files."""
    section: str
    desc: str
    pass_count: int = 0
    fail_count: int = 0
    warn_count: int = 0
    info_count: int = 0
    results: List[CISKubeBenchResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section": self.section,
            "desc": self.desc,
            "pass": self.pass_count,
            "fail": self.fail_count,
            "warn": self.warn_count,
            "info": self.info_count,
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CISKubeBenchTests":
        return cls(
            section=str(data["section"]),
            desc=data.get("desc", ""),
            pass_count=data.get("pass", 0),
            fail_count=data.get("fail", 0),
            warn_count=data.get("warn", 0),
            info_count=data.get("info", 0),
            results=[CISKubeBenchResult.from_dict(r) for r in data.get("results") or []],
        )


@dataclass
class CISKubeBenchSection:
    """One kube-bench control, e.g. 1 Master Node Security Configuration."""
    id: str
    version: str
    text: str
    node_type: str
    total_pass: int = 0
    total_fail: int = 0
    total_warn: int = 0
    total_info: int = 0
    tests: List[CISKubeBenchTests] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "text": self.text,
            "node_type": self.node_type,
            "total_pass": self.total_pass,
            "total_fail": self.total_fail,
            "total_warn": self.total_warn,
            "total_info": self.total_info,
            "tests": [t.to_dict() for t in self.tests],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CISKubeBenchSection":
        return cls(
            id=str(data["id"]),
            version=str(data.get("version", "")),
            text=data.get("text", ""),
            node_type=data.get("node_type", ""),
            total_pass=data.get("total_pass", 0),
            total_fail=data.get("total_fail", 0),
            total_warn=data.get("total_warn", 0),
            total_info=data.get("total_info", 0),
            tests=[CISKubeBenchTests.from_dict(t) for t in data.get("tests") or []],
        )


@dataclass
class CISKubeBenchReport:
    """
    Decoded kube-bench output for one node.

    The summary is derived from the sections by the converter; it is kept as
    a field so serialised reports carry it.
    """

    scanner: ScannerInfo
    summary: CISKubeBenchSummary
    sections: List[CISKubeBenchSection] = field(default_factory=list)
    update_timestamp: Optional[datetime] = None

    @property
    def test_count(self) -> int:
        """Number of individual checks across all sections."""
        return sum(len(t.results) for s in self.sections for t in s.tests)

    def results(self, status: Optional[str] = None) -> List[CISKubeBenchResult]:
        """
        Flatten all checks, optionally keeping only one status.

        Args:
            status: PASS, FAIL, WARN or INFO; None keeps all

        Returns:
            List of results in report order
        """
        flat = [r for s in self.sections for t in s.tests for r in t.results]
        if status is None:
            return flat
        return [r for r in flat if r.status == status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanner": self.scanner.to_dict(),
            "summary": self.summary.to_dict(),
            "updateTimestamp": self.update_timestamp.isoformat() if self.update_timestamp else None,
            "sections": [s.to_dict() for s in self.sections],
        }

    def __str__(self) -> str:
        s = self.summary
        return (
            f"CISKubeBenchReport({len(self.sections)} sections, "
            f"pass={s.pass_count} fail={s.fail_count} warn={s.warn_count} info={s.info_count})"
        )
