"""
Core module for urdf2simox - model, config, logging and errors
"""
