import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Result
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from errors import MalformedRequestError, NotFoundError, ReferentialError
from sql import (
    Contains,
    Equals,
    FieldMapper,
    Flag,
    MaxBound,
    MinBound,
    build_set_clause,
    build_where_clause,
    where,
)

logger = structlog.get_logger(__name__)


# --- Resource tables ---
JOB_FIELDS = FieldMapper(
    ["id", "title", "salary", "equity", "companyHandle"],
    {"companyHandle": "company_handle"},
)
JOB_UPDATABLE = frozenset({"title", "salary", "equity"})
JOB_FILTERS = {
    "title": Contains("title"),
    "minSalary": MinBound("salary"),
    "maxSalary": MaxBound("salary"),
    "minEquity": MinBound("equity"),
    "maxEquity": MaxBound("equity"),
    "hasEquity": Flag("equity", "{column} > 0"),
    "companyHandle": Equals("companyHandle"),
}

COMPANY_FIELDS = FieldMapper(
    ["handle", "name", "description", "numEmployees", "logoUrl"],
    {"numEmployees": "num_employees", "logoUrl": "logo_url"},
)
COMPANY_FILTERS = {
    "nameLike": Contains("name"),
    "minEmployees": MinBound("numEmployees"),
    "maxEmployees": MaxBound("numEmployees"),
}

_PLACEHOLDER = re.compile(r"\$(\d+)")


def _execute(db: Session, sql: str, values: Sequence[Any] = ()) -> Result:
    """Run a ``$n``-style statement through SQLAlchemy's named binds."""
    stmt = text(_PLACEHOLDER.sub(r":p\1", sql))
    params = {f"p{i}": value for i, value in enumerate(values, start=1)}
    return db.execute(stmt, params)


def _row(result: Result) -> Optional[Dict[str, Any]]:
    row = result.mappings().first()
    return dict(row) if row is not None else None


# --- Job CRUD ---
def create_job(
    db: Session,
    *,
    title: str,
    company_handle: str,
    salary: Optional[int] = None,
    equity: Any = None,
) -> Dict[str, Any]:
    """Insert a job and return it as stored, including its new ``id``."""
    sql = f"""INSERT INTO jobs (title, salary, equity, company_handle)
              VALUES ($1, $2, $3, $4)
              RETURNING {JOB_FIELDS.select_list()}"""
    try:
        job = _row(_execute(db, sql, [title, salary, equity, company_handle]))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if "foreign key" not in str(exc.orig).lower():
            raise
        logger.warning("Job insert rejected", company_handle=company_handle, exc=str(exc.orig))
        raise ReferentialError(f"No company: {company_handle}") from exc

    logger.info("Job created", job_id=job["id"], company_handle=company_handle)
    return job


def find_jobs(db: Session, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    """Jobs matching ``filters`` (see ``JOB_FILTERS``), ordered by title."""
    clause, values = build_where_clause(filters, JOB_FILTERS, JOB_FIELDS)
    sql = f"""SELECT {JOB_FIELDS.select_list()}
              FROM jobs
              {where(clause)}
              ORDER BY title"""
    return [dict(row) for row in _execute(db, sql, values).mappings()]


def get_job(db: Session, job_id: int) -> Dict[str, Any]:
    """Job detail with its company nested under ``company``."""
    job = _row(
        _execute(
            db,
            f"SELECT {JOB_FIELDS.select_list()} FROM jobs WHERE id = $1",
            [job_id],
        )
    )
    if job is None:
        logger.info("Job not found", job_id=job_id)
        raise NotFoundError(f"No job: {job_id}")

    handle = job.pop("companyHandle")
    job["company"] = _row(
        _execute(
            db,
            f"SELECT {COMPANY_FIELDS.select_list()} FROM companies WHERE handle = $1",
            [handle],
        )
    )
    return job


def update_job(db: Session, job_id: int, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Partial update: only keys present in ``data`` change.

    ``data`` may hold ``title``, ``salary`` and ``equity``; a ``None`` salary
    or equity clears it. The company reference cannot be changed.
    """
    rejected = sorted(set(data) - JOB_UPDATABLE)
    if rejected:
        raise MalformedRequestError(f"Cannot update: {', '.join(rejected)}")

    set_cols, values = build_set_clause(data, JOB_FIELDS)
    id_idx = len(values) + 1

    sql = f"""UPDATE jobs
              SET {set_cols}
              WHERE id = ${id_idx}
              RETURNING {JOB_FIELDS.select_list()}"""
    try:
        job = _row(_execute(db, sql, [*values, job_id]))
    except IntegrityError:
        db.rollback()
        raise
    if job is None:
        db.rollback()
        logger.info("Job not found", job_id=job_id)
        raise NotFoundError(f"No job: {job_id}")

    db.commit()
    logger.info("Job updated", job_id=job_id, fields=list(data))
    return job


def remove_job(db: Session, job_id: int) -> None:
    deleted = _row(_execute(db, "DELETE FROM jobs WHERE id = $1 RETURNING id", [job_id]))
    if deleted is None:
        db.rollback()
        logger.info("Job not found", job_id=job_id)
        raise NotFoundError(f"No job: {job_id}")

    db.commit()
    logger.info("Job removed", job_id=job_id)


# --- Company lookups (read-only) ---
def find_companies(db: Session, filters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    clause, values = build_where_clause(filters, COMPANY_FILTERS, COMPANY_FIELDS)
    sql = f"""SELECT {COMPANY_FIELDS.select_list()}
              FROM companies
              {where(clause)}
              ORDER BY name"""
    return [dict(row) for row in _execute(db, sql, values).mappings()]


def get_company(db: Session, handle: str) -> Dict[str, Any]:
    """Company detail with its jobs (without the company reference)."""
    company = _row(
        _execute(
            db,
            f"SELECT {COMPANY_FIELDS.select_list()} FROM companies WHERE handle = $1",
            [handle],
        )
    )
    if company is None:
        raise NotFoundError(f"No company: {handle}")

    jobs = _execute(
        db,
        f"""SELECT {JOB_FIELDS.select_list(["id", "title", "salary", "equity"])}
            FROM jobs
            WHERE company_handle = $1
            ORDER BY id""",
        [handle],
    )
    company["jobs"] = [dict(row) for row in jobs.mappings()]
    return company
