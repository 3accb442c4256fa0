"""Exposition format exporters"""
