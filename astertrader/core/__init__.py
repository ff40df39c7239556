"""核心层"""
