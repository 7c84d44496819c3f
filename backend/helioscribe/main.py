"""
HelioScribe - 账户、认证与网站注册服务
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from helioscribe.common.config import settings
from helioscribe.common.database import db_manager
from helioscribe.common.exceptions import register_exception_handlers
from helioscribe.common.logging_config import setup_logging

# 配置日志系统
setup_logging(
    log_level=settings.log_level,
    log_dir=settings.log_dir,
    log_file_prefix="helioscribe",
    backup_count=30,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info(f"🚀 {settings.app_name} starting ({settings.environment})...")
    await db_manager.initialize()
    logger.info("✅ Database initialization completed")

    yield

    logger.info("Application shutting down...")
    await db_manager.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Accounts, authentication and website registration",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/health")
async def health_check():
    """健康检查端点"""
    return {
        "success": True,
        "status": "healthy",
        "environment": settings.environment,
        "database": "connected" if db_manager.available else "disconnected",
    }


from helioscribe.domains.auth.api import router as auth_router
from helioscribe.domains.security.api import router as security_router
from helioscribe.domains.user.api import router as user_router
from helioscribe.domains.website.api import router as website_router

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(security_router, prefix="/api/security", tags=["security"])
app.include_router(user_router, prefix="/api/user", tags=["user"])
app.include_router(website_router, prefix="/api/websites", tags=["websites"])


if __name__ == "__main__":
    import uvicorn

    logger.info("=" * 60)
    logger.info(f"🎯 Starting {settings.app_name}")
    logger.info("📍 API Server: http://localhost:5000")
    logger.info("📚 API Docs: http://localhost:5000/docs")
    logger.info("=" * 60)

    uvicorn.run(
        "helioscribe.main:app",
        host="0.0.0.0",
        port=5000,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
