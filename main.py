from decimal import Decimal
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import crud
import schemas
from auth import TokenPayload, ensure_admin
from database import create_db_and_tables, get_db
from errors import AppError, MalformedRequestError
from observability import init_observability
from request_id_middleware import RequestIdMiddleware
from settings import get_settings


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)

# Create DB tables on startup
create_db_and_tables()

app = FastAPI(
    title=get_settings().app_name,
    description="Job board API: companies and the jobs they post",
    version="0.1.0",
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


# --- Error handling ---
def _error_response(message, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "status": status_code}},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return _error_response(exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errs = [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]
    logger.info("Request validation failed", path=request.url.path, errors=errs)
    return _error_response(errs, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error", path=request.url.path, exc_info=exc)
    return _error_response("Internal Server Error", status.HTTP_500_INTERNAL_SERVER_ERROR)


# --- Meta ---
@app.get("/", tags=["meta"])
async def root():
    return {"message": f"{get_settings().app_name} API is running"}


@app.get("/healthz", tags=["meta"])
async def healthz():
    return {"status": "ok"}


# --- Job Endpoints ---
@app.post(
    "/jobs",
    response_model=schemas.JobResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Jobs"],
)
def create_job_endpoint(
    job_in: schemas.JobCreate,
    admin: TokenPayload = Depends(ensure_admin),
    db: Session = Depends(get_db),
):
    """Create a job. Authorization required: admin."""
    job = crud.create_job(db, **job_in.model_dump())
    return {"job": job}


@app.get("/jobs", response_model=schemas.JobsResponse, tags=["Jobs"])
def find_jobs_endpoint(
    title: Optional[str] = Query(None, description="Case-insensitive substring of the title"),
    min_salary: Optional[int] = Query(None, alias="minSalary", ge=0),
    max_salary: Optional[int] = Query(None, alias="maxSalary", ge=0),
    min_equity: Optional[Decimal] = Query(None, alias="minEquity", ge=0, le=1),
    max_equity: Optional[Decimal] = Query(None, alias="maxEquity", ge=0, le=1),
    has_equity: Optional[bool] = Query(None, alias="hasEquity", description="Only jobs with non-zero equity"),
    company_handle: Optional[str] = Query(None, alias="companyHandle"),
    db: Session = Depends(get_db),
):
    """List jobs ordered by title. Authorization required: none."""
    if min_salary is not None and max_salary is not None and min_salary > max_salary:
        raise MalformedRequestError("minSalary cannot be greater than maxSalary")
    if min_equity is not None and max_equity is not None and min_equity > max_equity:
        raise MalformedRequestError("minEquity cannot be greater than maxEquity")

    filters = {
        "title": title,
        "minSalary": min_salary,
        "maxSalary": max_salary,
        "minEquity": min_equity,
        "maxEquity": max_equity,
        "hasEquity": has_equity,
        "companyHandle": company_handle,
    }
    jobs = crud.find_jobs(db, {k: v for k, v in filters.items() if v is not None})
    return {"jobs": jobs}


@app.get("/jobs/{job_id}", response_model=schemas.JobDetailResponse, tags=["Jobs"])
def get_job_endpoint(job_id: int, db: Session = Depends(get_db)):
    return {"job": crud.get_job(db, job_id)}


@app.patch("/jobs/{job_id}", response_model=schemas.JobResponse, tags=["Jobs"])
def update_job_endpoint(
    job_id: int,
    job_in: schemas.JobUpdate,
    admin: TokenPayload = Depends(ensure_admin),
    db: Session = Depends(get_db),
):
    """Partial update of title, salary and equity. Authorization required: admin."""
    data = job_in.model_dump(exclude_unset=True, by_alias=True)
    job = crud.update_job(db, job_id, data)
    return {"job": job}


@app.delete("/jobs/{job_id}", response_model=schemas.DeletedResponse, tags=["Jobs"])
def delete_job_endpoint(
    job_id: int,
    admin: TokenPayload = Depends(ensure_admin),
    db: Session = Depends(get_db),
):
    logger.info("Deleting job", job_id=job_id, username=admin.username)
    crud.remove_job(db, job_id)
    return {"deleted": job_id}


# --- Company Endpoints (read-only) ---
@app.get("/companies", response_model=schemas.CompaniesResponse, tags=["Companies"])
def find_companies_endpoint(
    name_like: Optional[str] = Query(None, alias="nameLike"),
    min_employees: Optional[int] = Query(None, alias="minEmployees", ge=0),
    max_employees: Optional[int] = Query(None, alias="maxEmployees", ge=0),
    db: Session = Depends(get_db),
):
    if min_employees is not None and max_employees is not None and min_employees > max_employees:
        raise MalformedRequestError("minEmployees cannot be greater than maxEmployees")

    filters = {
        "nameLike": name_like,
        "minEmployees": min_employees,
        "maxEmployees": max_employees,
    }
    companies = crud.find_companies(db, {k: v for k, v in filters.items() if v is not None})
    return {"companies": companies}


@app.get("/companies/{handle}", response_model=schemas.CompanyResponse, tags=["Companies"])
def get_company_endpoint(handle: str, db: Session = Depends(get_db)):
    return {"company": crud.get_company(db, handle)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
