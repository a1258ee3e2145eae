"""
Curriculum engine: lectures, prerequisite edges and the philosophy knowledge graph.
"""
