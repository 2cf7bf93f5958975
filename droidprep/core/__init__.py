"""Core preparation pipeline"""
