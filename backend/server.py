"""
작업 요청 관리 시스템 - Work Request Lifecycle Service
Jig, production and sample requests
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from pathlib import Path
import os
import logging

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# ==================== Logging Configuration ====================
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from database import init_postgres_db, close_postgres_db
from routes.auth_routes import auth_router
from routes.work_requests_routes import work_requests_router


# Create the main app
app = FastAPI(
    title="작업 요청 관리 시스템",
    description="Work Request Lifecycle Service - jig, production and sample requests",
    version="1.0.0"
)


# Health check endpoint at root level (for Kubernetes)
@app.get("/health")
async def root_health_check():
    """Health check endpoint for Kubernetes liveness/readiness probes"""
    return {"status": "healthy", "database": "PostgreSQL"}


app.include_router(auth_router)
app.include_router(work_requests_router)

# ==================== CORS Configuration ====================
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== Startup & Shutdown Events ====================
@app.on_event("startup")
async def startup_db_client():
    """Initialize PostgreSQL database on startup"""
    logger.info("🚀 Starting Work Request Lifecycle Service...")
    await init_postgres_db()
    logger.info("✅ PostgreSQL database initialized successfully")


@app.on_event("shutdown")
async def shutdown_db_client():
    """Close database connections on shutdown"""
    logger.info("🛑 Shutting down...")
    await close_postgres_db()
    logger.info("✅ Database connections closed")
