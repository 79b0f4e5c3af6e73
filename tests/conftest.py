#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
pytest設定ファイル
共通のフィクスチャやテスト設定を定義
"""

import io

import pytest
import tempfile
import shutil
from pathlib import Path
from PIL import Image

from preset_resizer.image_input import SourceImage


def encode_test_image(size=(64, 48), fmt="PNG", mode="RGB", color=(255, 0, 0), **save_kwargs):
    """指定サイズ・形式の画像バイト列を作る"""
    buffer = io.BytesIO()
    Image.new(mode, size, color=color).save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def noisy_image_bytes(size=(400, 300), fmt="PNG"):
    """圧縮しにくいノイズ画像のバイト列を作る"""
    buffer = io.BytesIO()
    Image.effect_noise(size, 100).convert("RGB").save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def temp_dir():
    """一時ディレクトリを作成・削除するフィクスチャ"""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def png_source():
    """4000x3000 の PNG ソース"""
    return SourceImage(
        name="holiday.photo.png",
        data=encode_test_image((4000, 3000), "PNG"),
        mime_type="image/png",
    )


@pytest.fixture
def sample_images(temp_dir):
    """様々なフォーマットのサンプル画像を作成するフィクスチャ"""
    images = {}

    jpeg_path = temp_dir / "sample.jpg"
    Image.new("RGB", (1920, 1080), color=(255, 0, 0)).save(jpeg_path, "JPEG", quality=95)
    images["jpeg"] = jpeg_path

    png_path = temp_dir / "sample.png"
    Image.new("RGBA", (1920, 1080), color=(0, 255, 0, 255)).save(png_path, "PNG")
    images["png"] = png_path

    webp_path = temp_dir / "sample.webp"
    Image.new("RGB", (1920, 1080), color=(0, 0, 255)).save(webp_path, "WEBP", quality=90)
    images["webp"] = webp_path

    portrait_path = temp_dir / "portrait.jpg"
    Image.new("RGB", (1080, 1920), color=(255, 255, 0)).save(portrait_path, "JPEG")
    images["portrait"] = portrait_path

    text_path = temp_dir / "notes.txt"
    text_path.write_text("not an image", encoding="utf-8")
    images["text"] = text_path

    broken_path = temp_dir / "broken.png"
    broken_path.write_bytes(b"\x89PNG\r\n\x1a\nthis is not really a png")
    images["broken"] = broken_path

    return images


@pytest.fixture
def make_image_bytes():
    """画像バイト列を作るファクトリ"""
    return encode_test_image


@pytest.fixture
def make_noisy_bytes():
    """ノイズ画像のバイト列を作るファクトリ"""
    return noisy_image_bytes
