"""Metric catalogue, registry and exposition"""
