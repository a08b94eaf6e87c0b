# 工具模块
from .precision import round_half_up, round2, round_json

__all__ = [
    'round_half_up',
    'round2',
    'round_json'
]
