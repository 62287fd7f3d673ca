"""Gateway 中间件：日志配置、request_id、trace_id"""
