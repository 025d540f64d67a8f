import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .error_handlers import add_error_handlers
from .routes import auth as auth_routes
from .routes import backup as backup_routes
from .routes import enrollments as enrollment_routes
from .routes import grades as grade_routes
from .routes import professors as professor_routes
from .routes import reports as report_routes
from .routes import statistics as statistics_routes
from .routes import students as student_routes
from .routes import subjects as subject_routes


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("pymongo").setLevel(logging.WARNING)
logging.getLogger("fontTools").setLevel(logging.WARNING)

app = FastAPI(title="Kampos Xestión")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_error_handlers(app)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


app.include_router(auth_routes.router, prefix="/api/auth", tags=["auth"])
app.include_router(professor_routes.router, prefix="/api/professors", tags=["professors"])
app.include_router(student_routes.router, prefix="/api/students", tags=["students"])
app.include_router(subject_routes.router, prefix="/api/subjects", tags=["subjects"])
app.include_router(enrollment_routes.router, prefix="/api/subjects", tags=["enrollments"])
app.include_router(grade_routes.router, prefix="/api/grades", tags=["grades"])
app.include_router(statistics_routes.router, prefix="/api/statistics", tags=["statistics"])
app.include_router(report_routes.router, prefix="/api/reports", tags=["reports"])
app.include_router(backup_routes.router, prefix="/api/backup", tags=["backup"])
