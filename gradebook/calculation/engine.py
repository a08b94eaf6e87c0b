# 成绩计算引擎
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


class StatisticalStrategy(ABC):
    """成绩计算策略抽象基类"""

    @abstractmethod
    def calculate(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        """执行计算"""
        pass

    @abstractmethod
    def validate_input(self, records: List[Any], config: Dict[str, Any]) -> Dict[str, Any]:
        """验证输入数据"""
        pass

    @abstractmethod
    def get_algorithm_info(self) -> Dict[str, str]:
        """获取算法信息"""
        pass


@dataclass
class CalculationMetrics:
    """计算指标"""
    operation_name: str
    data_size: int
    execution_time: float
    success: bool
    error_message: Optional[str] = None


class PerformanceMonitor:
    """性能监控器"""

    # 单次报告计算通常只涉及几百条成绩
    SLOW_CALCULATION_SECONDS = 1.0

    def __init__(self):
        self.metrics: List[CalculationMetrics] = []

    def record_calculation(self, operation: str, data_size: int, execution_time: float,
                           success: bool, error: Optional[str] = None):
        """记录计算指标"""
        self.metrics.append(CalculationMetrics(
            operation_name=operation,
            data_size=data_size,
            execution_time=execution_time,
            success=success,
            error_message=error
        ))

        if execution_time > self.SLOW_CALCULATION_SECONDS:
            logger.warning(f"计算性能告警: {operation} 耗时 {execution_time:.2f}s")

    def get_stats(self) -> Dict[str, Any]:
        """获取性能统计"""
        if not self.metrics:
            return {}

        successful = [m for m in self.metrics if m.success]
        failed = [m for m in self.metrics if not m.success]

        return {
            'total_operations': len(self.metrics),
            'successful_operations': len(successful),
            'failed_operations': len(failed),
            'success_rate': len(successful) / len(self.metrics),
            'avg_execution_time': (
                sum(m.execution_time for m in successful) / len(successful) if successful else 0
            ),
            'total_records_processed': sum(m.data_size for m in successful)
        }


class CalculationEngine:
    """成绩计算引擎核心"""

    def __init__(self):
        self.strategies: Dict[str, StatisticalStrategy] = {}
        self.performance_monitor = PerformanceMonitor()

    def register_strategy(self, name: str, strategy: StatisticalStrategy):
        """注册计算策略"""
        self.strategies[name] = strategy
        logger.info(f"已注册计算策略: {name}")

    def calculate(self, strategy_name: str, records: List[Any],
                  config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        执行计算

        Args:
            strategy_name: 已注册的策略名称
            records: 成绩记录列表
            config: 策略参数，例如 grade_level、semester

        Returns:
            策略结果，附带 _meta 元信息

        Raises:
            ValueError: 策略不存在或输入验证失败
        """
        config = config or {}
        if records is None:
            records = []
        elif not isinstance(records, pd.DataFrame):
            records = list(records)
        start_time = time.time()

        try:
            if strategy_name not in self.strategies:
                raise ValueError(f"未知的计算策略: {strategy_name}")

            strategy = self.strategies[strategy_name]

            validation_result = strategy.validate_input(records, config)
            if not validation_result['is_valid']:
                raise ValueError(f"数据验证失败: {validation_result['errors']}")

            result = strategy.calculate(records, config)

            execution_time = time.time() - start_time
            result['_meta'] = {
                'algorithm_info': strategy.get_algorithm_info(),
                'data_size': len(records),
                'calculation_time': execution_time,
                'validation_warnings': validation_result.get('warnings', [])
            }

            self.performance_monitor.record_calculation(
                strategy_name, len(records), execution_time, True
            )
            return result

        except Exception as e:
            self.performance_monitor.record_calculation(
                strategy_name, len(records), time.time() - start_time, False, str(e)
            )
            raise

    def get_performance_stats(self) -> Dict[str, Any]:
        """获取性能统计"""
        return self.performance_monitor.get_stats()

    def reset_performance_stats(self):
        """重置性能统计"""
        self.performance_monitor = PerformanceMonitor()

    def get_strategy_info(self, strategy_name: str) -> Dict[str, Any]:
        """获取特定策略的元数据信息

        Raises:
            ValueError: 当策略不存在时
        """
        if strategy_name not in self.strategies:
            raise ValueError(f"策略 '{strategy_name}' 不存在")

        algorithm_info = self.strategies[strategy_name].get_algorithm_info()
        return {
            'name': strategy_name,
            'description': algorithm_info.get('description', '无描述'),
            'version': algorithm_info.get('version', '1.0'),
            'algorithm_info': algorithm_info
        }

    def get_registered_strategies(self) -> List[str]:
        """获取已注册的策略列表"""
        return list(self.strategies.keys())


# 全局计算引擎实例
_calculation_engine = None


def get_calculation_engine() -> CalculationEngine:
    """获取全局计算引擎实例"""
    global _calculation_engine
    if _calculation_engine is None:
        _calculation_engine = CalculationEngine()
        logger.info("已初始化全局计算引擎")
    return _calculation_engine
