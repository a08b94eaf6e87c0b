import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Depends
from sqlalchemy.orm import Session

from ..calculation.engine import CalculationEngine, get_calculation_engine
from ..calculation.calculators.grade_calculator import GradeLevelConfig, letter_grade
from ..calculation.calculators.strategy_registry import (
    initialize_calculation_system,
    get_strategy_info,
    list_all_strategies,
)
from ..database.connection import get_db
from ..database.enums import ReportType
from ..database.repositories import GradeRepository, RepositoryError
from ..schemas.request_schemas import (
    GroupAverageRequest,
    SemesterAverageRequest,
    YearlyAverageRequest,
    LetterGradeRequest,
    ReportRequest,
)
from ..schemas.response_schemas import GradebookResponse, LetterGradeResponse, StrategyListResponse
from ..services.report_service import (
    ReportService,
    build_monthly_report,
    build_semester_report,
    build_yearly_report,
    present_report,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["成绩计算API"])


def get_engine() -> CalculationEngine:
    """获取已注册默认策略的计算引擎"""
    engine = get_calculation_engine()
    if not engine.get_registered_strategies():
        initialize_calculation_system()
    return engine


def get_report_service(db: Session = Depends(get_db)) -> ReportService:
    return ReportService(GradeRepository(db))


def _run_strategy(engine: CalculationEngine, strategy_name: str, records, config) -> GradebookResponse:
    try:
        result = engine.calculate(strategy_name, records, config)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return GradebookResponse(data=result)


@router.post("/averages/group", response_model=GradebookResponse)
async def calculate_group_average(request: GroupAverageRequest,
                                  engine: CalculationEngine = Depends(get_engine)):
    """单个时间段（月份）的平均分"""
    records = [record.model_dump() for record in request.records]
    return _run_strategy(engine, 'monthly_average', records, {
        'grade_level': request.grade_level,
        'month': request.month,
    })


@router.post("/averages/semester", response_model=GradebookResponse)
async def calculate_semester_average(request: SemesterAverageRequest,
                                     engine: CalculationEngine = Depends(get_engine)):
    """学期平均分"""
    records = [record.model_dump() for record in request.records]
    return _run_strategy(engine, 'semester_average', records, {
        'grade_level': request.grade_level,
        'semester': request.semester,
        'semester_labels': request.semester_labels,
    })


@router.post("/averages/yearly", response_model=GradebookResponse)
async def calculate_yearly_average(request: YearlyAverageRequest,
                                   engine: CalculationEngine = Depends(get_engine)):
    """学年平均分"""
    records = [record.model_dump() for record in request.records]
    return _run_strategy(engine, 'yearly_average', records, {
        'grade_level': request.grade_level,
        'semester_labels': request.semester_labels,
    })


@router.post("/letter-grade", response_model=LetterGradeResponse)
async def calculate_letter_grade(request: LetterGradeRequest):
    """分数转等级"""
    score = request.score if request.score is not None else 0.0
    grade = letter_grade(score, request.grade_level)
    return LetterGradeResponse(
        score=score,
        grade_level=request.grade_level,
        letter_grade=grade,
        letter_grade_name=GradeLevelConfig.LETTER_GRADE_NAMES[grade]
    )


@router.post("/reports/{report_type}", response_model=GradebookResponse)
async def build_report(report_type: str, request: ReportRequest):
    """根据请求中的成绩生成报告数据"""
    try:
        kind = ReportType(report_type)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"未知的报告类型: {report_type}")

    records = request.record_dicts()
    if kind == ReportType.MONTHLY:
        if not request.month:
            raise HTTPException(status_code=400, detail="月报告需要 month 参数")
        report = build_monthly_report(
            records, request.grade_level, request.month,
            course_id=request.course_id,
            attendance=request.attendance_dicts(),
            apply_attendance_penalty=request.apply_attendance_penalty
        )
    elif kind == ReportType.SEMESTER:
        if not request.semester:
            raise HTTPException(status_code=400, detail="学期报告需要 semester 参数")
        report = build_semester_report(
            records, request.grade_level, request.semester,
            course_id=request.course_id, semester_labels=request.semester_labels,
            attendance=request.attendance_dicts(),
            apply_attendance_penalty=request.apply_attendance_penalty
        )
    else:
        report = build_yearly_report(
            records, request.grade_level,
            course_id=request.course_id, semester_labels=request.semester_labels,
            attendance=request.attendance_dicts(),
            apply_attendance_penalty=request.apply_attendance_penalty
        )

    return GradebookResponse(data=present_report(report))


@router.get("/courses/{course_id}/reports/{report_type}", response_model=GradebookResponse)
async def get_course_report(
    course_id: int,
    report_type: str,
    month: Optional[str] = Query(None, description="月报告的月份标签 MM/YY"),
    semester: Optional[str] = Query(None, description="学期报告的学期标识"),
    grade_level: Optional[int] = Query(None, ge=1, le=9, description="年级，不指定则读取班级信息"),
    apply_attendance_penalty: bool = Query(False, description="是否按考勤扣分后排名"),
    service: ReportService = Depends(get_report_service)
):
    """读取数据库中的班级成绩并生成报告数据"""
    try:
        report = service.generate(
            report_type, course_id,
            month=month,
            semester=semester,
            grade_level=grade_level,
            apply_attendance_penalty=apply_attendance_penalty
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RepositoryError as e:
        logger.error(f"班级 {course_id} 报告生成失败: {str(e)}")
        raise HTTPException(status_code=500, detail=f"读取成绩数据失败: {str(e)}")

    return GradebookResponse(data=present_report(report))


@router.get("/strategies", response_model=StrategyListResponse)
async def get_strategies(engine: CalculationEngine = Depends(get_engine)):
    """列出已注册的计算策略"""
    strategies = list_all_strategies()
    return StrategyListResponse(strategies=strategies, total=len(strategies))


@router.get("/strategies/{strategy_name}")
async def get_strategy(strategy_name: str, engine: CalculationEngine = Depends(get_engine)):
    """获取单个计算策略信息"""
    try:
        return get_strategy_info(strategy_name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
