"""Gateway 业务服务层"""
