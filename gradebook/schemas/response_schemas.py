# 成绩计算API响应模型
from datetime import datetime, timezone
from typing import List, Dict, Any

from pydantic import BaseModel, Field, field_validator


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


class LetterGradeResponse(BaseModel):
    """分数转等级结果"""
    score: float
    grade_level: int
    letter_grade: str = Field(..., description="A-F")
    letter_grade_name: str = Field(..., description="等级本地化名称")


class StrategyInfoResponse(BaseModel):
    """计算策略信息"""
    name: str
    description: str
    class_name: str
    algorithm_info: Dict[str, Any]


class StrategyListResponse(BaseModel):
    """策略列表"""
    strategies: List[StrategyInfoResponse]
    total: int


class GradebookResponse(BaseModel):
    """成绩计算API统一响应"""
    code: int = Field(200, description="响应码")
    message: str = Field("success", description="响应消息")
    data: Any = Field(..., description="响应数据")
    timestamp: str = Field(default_factory=utc_timestamp, description="响应时间")

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        try:
            datetime.fromisoformat(v.replace('Z', '+00:00'))
        except ValueError:
            raise ValueError('时间戳格式错误，应为ISO 8601格式')
        return v
