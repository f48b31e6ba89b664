"""
hms_core - 与 ORM 无关的框架层
状态机引擎、半开区间运算、定点金额
"""
