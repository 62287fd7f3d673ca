"""TI-Flow Gateway -- FastAPI HTTP 入口 + 协商业务服务"""
