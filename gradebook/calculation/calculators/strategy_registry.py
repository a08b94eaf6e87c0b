# 策略注册表
import logging
from typing import Dict, Type, List, Any

from ..engine import StatisticalStrategy, CalculationEngine, get_calculation_engine
from .grade_calculator import MonthlyAverageCalculator
from .semester_calculator import SemesterAverageCalculator, YearlyAverageCalculator

logger = logging.getLogger(__name__)


class CalculationStrategyRegistry:
    """计算策略注册表"""

    def __init__(self):
        self._strategies: Dict[str, Type[StatisticalStrategy]] = {}
        self._descriptions: Dict[str, str] = {}

    def register(self, name: str, strategy_class: Type[StatisticalStrategy], description: str = ""):
        """注册计算策略"""
        if not isinstance(strategy_class, type) or not issubclass(strategy_class, StatisticalStrategy):
            raise ValueError(f"策略类 {strategy_class!r} 必须继承 StatisticalStrategy")

        self._strategies[name] = strategy_class
        self._descriptions[name] = description or strategy_class.__doc__ or "无描述"
        logger.info(f"已注册计算策略: {name} ({strategy_class.__name__})")

    def get_strategy(self, name: str) -> Type[StatisticalStrategy]:
        """获取策略类"""
        if name not in self._strategies:
            raise ValueError(f"未找到策略: {name}")
        return self._strategies[name]

    def create_strategy(self, name: str) -> StatisticalStrategy:
        """创建策略实例"""
        return self.get_strategy(name)()

    def get_description(self, name: str) -> str:
        return self._descriptions.get(name, "无描述")

    def list_strategies(self) -> List[Dict[str, str]]:
        """列出所有已注册的策略"""
        return [
            {
                'name': name,
                'class_name': strategy_class.__name__,
                'description': self._descriptions[name]
            }
            for name, strategy_class in self._strategies.items()
        ]

    def is_registered(self, name: str) -> bool:
        return name in self._strategies

    def unregister(self, name: str) -> bool:
        """注销策略"""
        if name in self._strategies:
            del self._strategies[name]
            del self._descriptions[name]
            logger.info(f"已注销计算策略: {name}")
            return True
        return False

    def register_to_engine(self, engine: CalculationEngine):
        """将所有策略注册到计算引擎"""
        for name in self._strategies:
            engine.register_strategy(name, self.create_strategy(name))
            logger.debug(f"策略 {name} 已注册到计算引擎")


# 全局策略注册表
_registry = CalculationStrategyRegistry()


def get_registry() -> CalculationStrategyRegistry:
    """获取全局策略注册表"""
    return _registry


def register_strategy(name: str, strategy_class: Type[StatisticalStrategy], description: str = ""):
    """注册策略到全局注册表"""
    _registry.register(name, strategy_class, description)


def register_default_strategies():
    """注册默认的计算策略"""
    register_strategy(
        'monthly_average',
        MonthlyAverageCalculator,
        '月平均分：按年级规则换算单月总分，并给出A-F等级'
    )

    register_strategy(
        'semester_average',
        SemesterAverageCalculator,
        '学期平均分：末月平均分与之前月份平均分的算术平均'
    )

    register_strategy(
        'yearly_average',
        YearlyAverageCalculator,
        '学年平均分：两个学期平均分的算术平均'
    )

    engine = get_calculation_engine()
    _registry.register_to_engine(engine)

    logger.info(f"已将 {len(_registry.list_strategies())} 个策略注册到计算引擎")


def initialize_calculation_system() -> CalculationEngine:
    """初始化计算系统"""
    logger.info("正在初始化计算系统...")

    register_default_strategies()
    engine = get_calculation_engine()

    logger.info(f"计算系统初始化完成，共注册策略: {engine.get_registered_strategies()}")
    return engine


def get_strategy_info(name: str) -> Dict[str, Any]:
    """获取策略详细信息"""
    if not _registry.is_registered(name):
        raise ValueError(f"策略 {name} 未注册")

    strategy_instance = _registry.create_strategy(name)
    return {
        'name': name,
        'description': _registry.get_description(name),
        'class_name': _registry.get_strategy(name).__name__,
        'algorithm_info': strategy_instance.get_algorithm_info()
    }


def list_all_strategies() -> List[Dict[str, Any]]:
    """列出所有策略的详细信息"""
    return [get_strategy_info(info['name']) for info in _registry.list_strategies()]
