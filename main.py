"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import ServiceContainer, build_container
from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import admin, devices, lockers, orders
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.database import create_tables

# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表（仅开发环境）。生产应使用 Alembic 迁移
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info(
            "database_migrations_required",
            message="No auto-create in production, use Alembic migrations (alembic upgrade head)"
        )

    yield

    # 关闭开门驱动持有的 HTTP 连接
    actuator = app.state.container.door_actuator
    close = getattr(actuator, "close", None)
    if callable(close):
        await close()
        logger.info("door_actuator_closed", driver=getattr(actuator, "name", "custom"))
    logger.info("application_shutdown", message="Application shutdown")


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """创建应用；测试可传入预先装配的服务容器"""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="智能寄存柜租赁服务：柜门占用、开门、计费结单与管理端运维",
        redoc_url="/redoc",
    )
    app.state.container = container or build_container(settings)

    # 添加中间件（注意顺序：从下往上执行）
    # 1. Request ID中间件（最先执行，为后续中间件提供request_id）
    app.add_middleware(RequestIDMiddleware)
    # 2. 日志中间件（依赖request_id）
    app.add_middleware(LoggingMiddleware)
    # 3. CORS中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(lockers.router, prefix="/api/v1")
    app.include_router(orders.router, prefix="/api/v1")
    app.include_router(devices.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    @app.get("/", tags=["Root"])
    async def root():
        """API根路径"""
        return success_response(
            data={
                "name": settings.PROJECT_NAME,
                "version": settings.VERSION,
                "docs": "/docs",
                "redoc": "/redoc"
            },
            message="Welcome"
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """健康检查端点"""
        return success_response(data={"status": "healthy"}, message="OK")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
