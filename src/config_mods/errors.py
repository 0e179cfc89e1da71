class MalformedInputError(ValueError):
    """原生工程文件或凭据内容损坏/截断，无法解码。"""
