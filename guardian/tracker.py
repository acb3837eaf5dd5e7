"""Cross-scan identity and status tracking for vulnerabilities.

A fingerprint is ``sha256(rule id | relative path | matched text | ordinal)``.
Whitespace runs in the matched text collapse to one space and the ordinal
counts earlier findings in the same scan sharing the first three parts, so
two identical matches in one file stay distinct. Line and column are left
out: a finding that only moved keeps its identity.
"""

import hashlib
import re
import time
from collections import Counter
from dataclasses import replace

from .models import Vulnerability, VulnerabilityStatus, VulnerabilitySummary

_WHITESPACE_RE = re.compile(r"\s+")


def now_millis() -> int:
    return int(time.time() * 1000)


def compute_fingerprint(rule_id: str, file_path: str, matched_text: str, ordinal: int = 0) -> str:
    normalized_path = file_path.replace("\\", "/")
    normalized_text = _WHITESPACE_RE.sub(" ", matched_text).strip()
    key = f"{rule_id}|{normalized_path}|{normalized_text}|{ordinal}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def assign_fingerprints(vulnerabilities: list[Vulnerability]) -> list[Vulnerability]:
    """Return copies of vulnerabilities carrying their fingerprints, in order."""
    seen: Counter[tuple[str, str, str]] = Counter()
    result: list[Vulnerability] = []
    for vuln in vulnerabilities:
        base = (vuln.rule_id, vuln.file_path, _WHITESPACE_RE.sub(" ", vuln.matched_text).strip())
        ordinal = seen[base]
        seen[base] += 1
        fingerprint = compute_fingerprint(vuln.rule_id, vuln.file_path, vuln.matched_text, ordinal)
        result.append(replace(vuln, fingerprint=fingerprint))
    return result


class VulnerabilityTracker:
    """Diffs a scan's findings against the previous report's findings."""

    def baseline(self, current: list[Vulnerability], now: int | None = None) -> list[Vulnerability]:
        """First scan of a project: everything is NEW."""
        now = now_millis() if now is None else now
        return [v.with_status(VulnerabilityStatus.NEW, now, first_detected=now) for v in current]

    def track(
        self,
        current: list[Vulnerability],
        previous: list[Vulnerability],
        now: int | None = None,
    ) -> list[Vulnerability]:
        now = now_millis() if now is None else now

        previous_by_fingerprint: dict[str, Vulnerability] = {}
        for vuln in previous:
            previous_by_fingerprint.setdefault(vuln.fingerprint, vuln)

        tracked: list[Vulnerability] = []
        for vuln in current:
            prior = previous_by_fingerprint.get(vuln.fingerprint)
            if prior is not None:
                first = prior.first_detected if prior.first_detected is not None else now
                tracked.append(vuln.with_status(VulnerabilityStatus.PERSISTENT, now, first_detected=first))
            else:
                tracked.append(vuln.with_status(VulnerabilityStatus.NEW, now, first_detected=now))

        current_fingerprints = {v.fingerprint for v in current}
        closed_fingerprints: set[str] = set()
        for prior in previous:
            if prior.fingerprint in current_fingerprints or prior.fingerprint in closed_fingerprints:
                continue
            closed_fingerprints.add(prior.fingerprint)
            tracked.append(prior.with_status(VulnerabilityStatus.CLOSED, now))

        return tracked


def summarize(vulnerabilities: list[Vulnerability]) -> VulnerabilitySummary:
    active = [v for v in vulnerabilities if v.is_active]
    statuses = Counter(v.status for v in vulnerabilities if v.status is not None)
    return VulnerabilitySummary(
        total=len(active),
        new=statuses.get(VulnerabilityStatus.NEW, 0),
        persistent=statuses.get(VulnerabilityStatus.PERSISTENT, 0),
        closed=statuses.get(VulnerabilityStatus.CLOSED, 0),
        by_severity=dict(Counter(v.severity for v in active)),
        by_category=dict(Counter(v.category for v in active)),
        by_status=dict(statuses),
    )
