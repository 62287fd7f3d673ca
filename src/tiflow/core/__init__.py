"""TI-Flow Core -- 协商任务领域模型、状态机、存储与预填充引擎"""
