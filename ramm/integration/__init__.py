"""
Pool engine, audit events and deployment config
"""
