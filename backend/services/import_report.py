from dataclasses import dataclass, field

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class RowResult:
    houjin_bangou: str
    action: str
    updated: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class BatchReport:
    rows: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    parse_errors: int = 0
    elapsed_ms: int = 0
    source_error: str | None = None
    failures: list[RowResult] = field(default_factory=list)

    def add(self, result: RowResult) -> None:
        self.rows += 1
        if result.action == CREATED:
            self.created += 1
        elif result.action == UPDATED:
            self.updated += 1
        elif result.action == SKIPPED:
            self.skipped += 1
        # a row can be "updated" and still carry per-match errors
        if not result.ok:
            self.failed += 1
            self.failures.append(result)

    def summary(self) -> str:
        return f"completed in {self.elapsed_ms}ms"

    def to_dict(self) -> dict:
        return {
            "rows": self.rows,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "parse_errors": self.parse_errors,
            "elapsed_ms": self.elapsed_ms,
            "source_error": self.source_error,
            "failures": [
                {"houjin_bangou": r.houjin_bangou, "action": r.action, "errors": list(r.errors)}
                for r in self.failures
            ],
        }
