class HoujinImportError(Exception):
    """Base class for errors raised by the zenkoku houjin import."""


class SourceUnavailable(HoujinImportError):
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"CSV source unavailable: {path} ({reason})")


class CsvParseError(HoujinImportError):
    def __init__(self, record: str | None, reason: str):
        self.record = record
        self.reason = reason
        super().__init__(f"Malformed CSV line: {reason}")


class LookupFailed(HoujinImportError):
    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Lookup failed for {identifier}: {reason}")


class ReconcileError(HoujinImportError):
    def __init__(self, houjin_bangou: str, reason: str, company_id: int | None = None):
        self.houjin_bangou = houjin_bangou
        self.reason = reason
        self.company_id = company_id
        target = f"company {company_id}" if company_id is not None else houjin_bangou
        super().__init__(f"Reconcile failed for {target}: {reason}")
