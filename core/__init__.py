"""
Shared configuration, errors and upstream infrastructure
"""
