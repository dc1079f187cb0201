# servicebell/services/qrcode_service.py
import qrcode
import qrcode.image.svg


def table_url(base_url: str, restaurant_id: int, table_id: int) -> str:
    """URL aberta pelo cliente ao escanear o QR Code da mesa."""
    return f"{base_url.rstrip('/')}/request/{restaurant_id}/{table_id}"


def render_svg(data: str) -> str:
    """Gera o QR Code como marcação SVG (guardada na própria mesa)."""
    img = qrcode.make(data, image_factory=qrcode.image.svg.SvgPathImage, box_size=10, border=4)
    return img.to_string(encoding="unicode")
