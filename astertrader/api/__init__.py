"""
Aster 信号交易系统 — 运维 API
"""
