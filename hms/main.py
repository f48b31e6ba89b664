"""
HMS 主应用入口
客房、住宿、体育设施预订、餐厅/超市/洗衣订单与餐桌管理
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from hms.config import settings
from hms.database import init_db
from hms.exceptions import HospitalityError
from hms.routers import stays, sport_reservations, orders, restaurant_tables

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时初始化数据库
    init_db()
    logger.info(f"{settings.APP_NAME} started")
    yield


# 创建应用
app = FastAPI(
    title=f"{settings.APP_NAME} - 酒店综合管理系统",
    description="住宿、体育设施预订、订单账本与餐桌分配",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HospitalityError)
async def hospitality_error_handler(request: Request, exc: HospitalityError):
    """业务异常统一转换为 {detail, code}"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# 注册路由
app.include_router(stays.router)
app.include_router(sport_reservations.router)
app.include_router(orders.restaurant_router)
app.include_router(orders.supermarket_router)
app.include_router(orders.laundry_router)
app.include_router(restaurant_tables.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
