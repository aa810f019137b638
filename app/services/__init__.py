"""In-process business logic shared by routes and jobs"""
