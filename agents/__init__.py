"""
Advisory agents
"""
