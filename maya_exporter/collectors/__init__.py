"""Collectors for volume, pool and dataset statistics"""
