"""PresetResizer: プリセットに基づく単一画像のリサイズ・再圧縮ツール。"""

__version__ = "0.1.0"
