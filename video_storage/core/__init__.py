"""
Core layer - process state and observability shared by every route.
"""
