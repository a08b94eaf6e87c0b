import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.report_api import router as report_router
from .calculation.calculators.strategy_registry import initialize_calculation_system

logging.basicConfig(
    level=os.getenv("GRADEBOOK_LOG_LEVEL", "INFO"),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = FastAPI(
    title="成绩报告计算服务",
    description="月/学期/学年平均分与报告数据计算API",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("GRADEBOOK_CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

initialize_calculation_system()

app.include_router(report_router, prefix="/api/v1/gradebook", tags=["成绩计算API"])


@app.get("/")
async def root():
    return {
        "message": "成绩报告计算服务",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gradebook.main:app", host="0.0.0.0", port=int(os.getenv("GRADEBOOK_PORT", "8000")), reload=False)
