"""Role-based access control"""
