"""Core auction engine, collaborators and persistence"""
