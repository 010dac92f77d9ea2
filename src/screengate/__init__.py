"""screengate：限制时间表求值与正念活动选择。"""

__version__ = "0.1.0"
