import logging
import re
from datetime import date
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.company import Company, IndustryClassification
from services.houjin_lookup_client import EnrichmentResult
from services.import_errors import ReconcileError
from services.import_report import CREATED, FAILED, SKIPPED, UPDATED, RowResult

logger = logging.getLogger(__name__)

IMPORT_MEMO = "全国法人リスト"
INDUSTRY_PLACEHOLDER = "-"

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def is_valid_incorporation_date(value: Any) -> bool:
    """True only for strings shaped exactly like YYYY-MM-DD."""
    return isinstance(value, str) and _DATE_RE.fullmatch(value) is not None


def parse_incorporation_date(value: Any) -> date | None:
    if not is_valid_incorporation_date(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        # right shape, impossible calendar date (e.g. 2023-02-30)
        return None


def _text(value: Any) -> str:
    return "" if value is None else value


def build_company_update(company: Company, result: EnrichmentResult) -> dict[str, Any]:
    """
    Sparse update for an existing company: only fields still holding their
    "unknown" sentinel are filled. Industry is the one value that may
    overwrite, and memo is always rewritten. Name is never touched.
    """
    update: dict[str, Any] = {}

    # never true for companies found by houjin_bangou; kept for callers passing other records
    if company.houjin_bangou == "":
        update["houjin_bangou"] = _text(result.houjin_bangou)
    if company.url == "":
        update["url"] = _text(result.url)
    if company.tel == "":
        update["tel"] = _text(result.tel)
    if company.incorporated_at is None:
        incorporated_at = parse_incorporation_date(result.incorporated_at)
        if incorporated_at is not None:
            update["incorporated_at"] = incorporated_at
    if result.industry and result.industry != INDUSTRY_PLACEHOLDER:
        update["industry"] = result.industry

    update["memo"] = IMPORT_MEMO
    return update


def apply_company_update(company: Company, update: dict[str, Any]) -> None:
    fields = dict(update)
    industry = fields.pop("industry", None)
    for key, value in fields.items():
        setattr(company, key, value)

    if industry is not None:
        if company.industry_classification is None:
            company.industry_classification = IndustryClassification(industry=industry)
        else:
            company.industry_classification.industry = industry


def build_company(result: EnrichmentResult, original_name: str) -> Company:
    return Company(
        name=original_name,
        prefecture=result.prefecture,
        address=result.address,
        incorporated_at=parse_incorporation_date(result.incorporated_at),
        houjin_bangou=result.match_key,
        listing_status=result.listing_status,
        capital=result.capital,
        revenue=result.revenue,
        url=result.url,
        tel=_text(result.tel),
        employee_number=result.employee_number,
        memo=IMPORT_MEMO,
        industry_classification=IndustryClassification(industry=_text(result.industry)),
    )


class CompanyReconciler:
    """
    Folds one EnrichmentResult into the company directory.

    Every call opens its own session, so concurrent rows never share one.
    Matching is by houjin bangou, which is not unique: every match is
    updated and committed separately.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def reconcile(self, result: EnrichmentResult, original_name: str) -> RowResult:
        if not result.url:
            logger.info("Skipping %s: lookup returned no url", result.identifier)
            return RowResult(houjin_bangou=result.identifier, action=SKIPPED)

        key = result.match_key
        db = self.session_factory()
        try:
            try:
                companies = db.query(Company).filter(Company.houjin_bangou == key).all()
            except SQLAlchemyError as exc:
                db.rollback()
                raise ReconcileError(key, str(exc)) from exc

            if not companies:
                return self._create(db, result, original_name)
            return self._update_matches(db, companies, result)
        finally:
            db.close()

    def _create(self, db: Session, result: EnrichmentResult, original_name: str) -> RowResult:
        db.add(build_company(result, original_name))
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise ReconcileError(result.match_key, str(exc)) from exc

        logger.info("Company created: %s (%s)", result.url, result.match_key)
        return RowResult(houjin_bangou=result.identifier, action=CREATED)

    def _update_matches(
        self,
        db: Session,
        companies: list[Company],
        result: EnrichmentResult,
    ) -> RowResult:
        row = RowResult(houjin_bangou=result.identifier, action=UPDATED)
        for company in companies:
            company_id = company.id
            try:
                apply_company_update(company, build_company_update(company, result))
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                error = ReconcileError(result.match_key, str(exc), company_id=company_id)
                logger.exception("Company update failed: %s", error)
                row.errors.append(str(error))
                continue

            row.updated += 1
            logger.info("Company updated: id=%s url=%s", company_id, result.url)

        if row.updated == 0 and row.errors:
            row.action = FAILED
        return row
