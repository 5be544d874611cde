"""Gavel command line interface"""
