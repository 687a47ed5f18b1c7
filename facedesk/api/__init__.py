"""HTTP API for the face pipeline"""
