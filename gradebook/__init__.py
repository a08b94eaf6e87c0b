# 成绩平均分与报告计算服务
__version__ = "1.0.0"
