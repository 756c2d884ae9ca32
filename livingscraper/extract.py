# livingscraper/extract.py
"""Read a LivingInsider detail page into a raw field bag.

`extract(page, url)` pulls the rendered HTML from the browser once and all
parsing happens in `parse_detail_html`, which works on plain HTML and is
what the tests exercise.
"""
import copy
import re
from bs4 import BeautifulSoup
from .utils import clean_text

# try to detect available parser; prefer lxml if installed
try:
    import lxml  # type: ignore  # noqa: F401
    _bs_parser = "lxml"
except Exception:
    _bs_parser = "html.parser"

BREADCRUMB = 'nav[aria-label="breadcrumb"] a, .breadcrumb a'

CATEGORY_KEYWORDS = (
    (("คอนโด",), "คอนโด"),
    (("บ้านเดี่ยว",), "บ้านเดี่ยว"),
    (("ทาวน์",), "ทาวน์เฮ้าส์"),
    (("ที่ดิน",), "ที่ดิน"),
    (("อาคาร", "ตึก"), "อาคารพาณิชย์"),
)

FACILITY_KEYWORDS = {
    "has_pool": ("สระ",),
    "has_gym": ("ฟิตเนส", "ยิม", "gym"),
    "has_parking": ("จอดรถ",),
    "has_security": ("รักษาความปลอดภัย", "security"),
    "has_garden": ("สวน", "garden"),
    "has_sauna": ("ซาวน่า", "sauna"),
    "has_ev_charger": ("ev charger",),
    "has_sky_pool": ("สระน้ำลอยฟ้า", "sky pool"),
    "has_foreigner_quota": ("โควต้าต่างชาติ", "foreigner"),
    "is_luxury": ("luxury",),
    "has_private_lift": ("ลิฟต์ส่วนตัว", "private lift"),
}

JUNK_IMAGE_PARTS = ("logo", "flag_", "no-user", "ic_bts", "ic_mrt", "/assets", "/station")

PHONE = re.compile(r"0[\d\s-]{8,}")
LINE_ID = re.compile(r"@([a-zA-Z0-9._-]{3,30})")
PRICE_PSM = re.compile(r"\(([^)]*บ[^)]*/[^)]*ตร[^)]*)\)")
STATS = re.compile(r":\s*([\d,]+)\s*:\s*([\d,]+)")


def _txt(el):
    return clean_text(el.get_text(" ")) if el is not None else ""


def _first_href(soup, selector):
    el = soup.select_one(selector)
    return (el.get("href") or "").strip() if el is not None else ""


def _is_junk_image(src):
    lower = src.lower()
    return len(src) < 20 or any(part in lower for part in JUNK_IMAGE_PARTS)


def _is_price(text):
    return text.startswith("฿") and len(text) <= 30 and any(c.isdigit() for c in text)


def get_title(soup):
    main = soup.select_one("h1.font_sarabun.show-title, h1.show-title")
    title = _txt(main)
    if len(title) > 10:
        return title
    return _txt(soup.find("h1"))


def get_project_name(soup):
    # breadcrumb is home > location > project > listing
    links = soup.select(BREADCRUMB)
    if len(links) >= 3:
        name = _txt(links[-2])
        if 2 < len(name) < 100:
            return name
    return None


def get_badges(soup, body_text):
    badges = [t for t in (_txt(el) for el in soup.select('.badge, .tag, span[class*="badge"]')) if t and len(t) <= 30]
    category, deal_type = "", ""
    for badge in badges:
        lower = badge.lower()
        if not deal_type:
            if badge == "ขาย":
                deal_type = "ขาย"
            elif badge in ("เช่า", "ให้เช่า"):
                deal_type = "เช่า"
        if not category:
            for words, label in CATEGORY_KEYWORDS:
                if any(w in lower for w in words):
                    category = label
                    break
    if not category:
        if "คอนโด" in body_text:
            category = "คอนโด"
        elif "บ้านเดี่ยว" in body_text:
            category = "บ้านเดี่ยว"
    return {"category": category, "deal_type": deal_type}


def get_price_info(soup, body_text):
    price_text = ""
    holder = soup.select_one('[class*="price"]:not([class*="old"])')
    if holder is not None:
        for el in holder.find_all(True):
            text = _txt(el)
            if _is_price(text):
                price_text = text
                break
    if not price_text:
        for el in soup.find_all(True):
            text = _txt(el)
            if _is_price(text):
                price_text = text
                break

    psm = PRICE_PSM.search(body_text)
    return {
        "price_text": price_text,
        "old_price_text": _txt(soup.select_one('s, del, [class*="old-price"]')),
        "price_psm_text": psm.group(1) if psm else "",
    }


def get_property_details(body_text):
    def grab(pattern, cast=int):
        m = re.search(pattern, body_text)
        return cast(m.group(1)) if m else None

    return {
        "bedrooms": grab(r"(\d+)\s*ห้องนอน"),
        "bathrooms": grab(r"(\d+)\s*ห้องน้ำ"),
        "usable_area_sqm": grab(r"(\d+(?:\.\d+)?)\s*ตร\.ม\.", float),
        "floor": grab(r"(\d+)\s*ชั้น", str),
        "parking": grab(r"(\d+)\s*ที่จอดรถ"),
    }


def get_stats(body_text):
    m = STATS.search(body_text)
    if not m:
        return {"views": None, "clicks": None}
    return {
        "views": int(m.group(1).replace(",", "")),
        "clicks": int(m.group(2).replace(",", "")),
    }


def get_agent_info(soup):
    section = soup.select_one('[class*="agent"], [class*="seller"]')
    if section is None:
        return {"agent_name": "", "agent_verified": False}
    return {
        "agent_name": _txt(section.select_one('h3, h4, [class*="name"]')),
        "agent_verified": "verified" in _txt(section).lower(),
    }


def get_contacts(soup, body_text):
    phone = _txt(soup.select_one("#phone_number_modal_show"))
    if not phone:
        for span in soup.select('span[id^="hideTel_"]'):
            text = _txt(span)
            if text and PHONE.search(text):
                phone = text
                break
    if not phone:
        m = PHONE.search(body_text)
        phone = m.group(0) if m else ""

    email = _first_href(soup, 'a[href^="mailto:"]')
    line_id = LINE_ID.search(body_text)
    return {
        "phone": re.sub(r"[\s-]", "", phone),
        "email": re.sub(r"^mailto:", "", email, flags=re.I).strip(),
        "line_url": _first_href(soup, 'a[href*="line.me"], a[href*="lin.ee"]'),
        "line_id": "@" + line_id.group(1) if line_id else "",
        "fb_url": _first_href(soup, 'a[href*="facebook.com"]'),
    }


def get_images(soup):
    imgs = []
    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src") or ""
        if not src or _is_junk_image(src):
            continue
        if "/upload" in src or "cloudfront" in src or len(src) > 50:
            imgs.append(src)
    return {"imgs": imgs}


def get_location(soup):
    crumbs = [t for t in (_txt(a) for a in soup.select(BREADCRUMB)) if t and len(t) <= 40]
    location = crumbs[-2] if len(crumbs) >= 2 else ""
    return {"location_text": location, "province": location, "breadcrumb": crumbs}


def get_description(soup):
    el = soup.select_one('[class*="description"], .detail-content')
    if el is None:
        return {"description": ""}
    el = copy.copy(el)
    for junk in el.select("nav, footer, script, style"):
        junk.decompose()
    return {"description": _txt(el)[:2000]}


def get_dates(soup):
    texts = [t for t in (_txt(el) for el in soup.select('[class*="date"], time')) if "สร้าง" in t or "ดัน" in t]
    return {
        "created": next((t for t in texts if "สร้าง" in t), ""),
        "bumped": next((t for t in texts if "ดัน" in t), ""),
    }


def _float_attr(el, name):
    try:
        return float(el.get(name))
    except (TypeError, ValueError):
        return None


def get_nearby_places(soup):
    groups = {"bts": [], "hospitals": [], "universities": [], "malls": [], "all_places": []}
    for item in soup.select(".box-link-map"):
        name = _txt(item.select_one(".box-map-l span"))
        digits = re.sub(r"[^\d.]", "", _txt(item.select_one(".box-map-l p")))
        try:
            distance = float(digits)
        except ValueError:
            distance = 0.0
        if not name or not distance:
            continue

        kind = item.get("data-map")
        place = {
            "name": name,
            "distance_km": distance,
            "lat": _float_attr(item, "data-lat"),
            "lng": _float_attr(item, "data-lng"),
        }
        groups["all_places"].append({**place, "type": kind})
        if kind == "living_transit" or "BTS" in name or "MRT" in name:
            groups["bts"].append(place)
        elif kind == "living_hospital" or "โรงพยาบาล" in name:
            groups["hospitals"].append(place)
        elif kind == "living_academy" or "วิทยาลัย" in name:
            groups["universities"].append(place)
        elif kind == "living_mall":
            groups["malls"].append(place)

    for places in groups.values():
        places.sort(key=lambda p: p["distance_km"])
    groups["all_places"] = groups["all_places"][:20]
    return groups


def get_facilities(soup):
    facilities = []
    flags = {flag: False for flag in FACILITY_KEYWORDS}
    for item in soup.select(".item_property_highlight"):
        name = _txt(item.select_one(".text_property_highlight"))
        if not name or len(name) >= 50:
            continue
        facilities.append(name)
        lower = name.lower()
        for flag, words in FACILITY_KEYWORDS.items():
            if any(w in lower for w in words):
                flags[flag] = True
    return {"facilities": facilities, **flags}


def parse_detail_html(html, url=None):
    soup = BeautifulSoup(html or "", _bs_parser)
    body = soup.body or soup
    body_text = clean_text(body.get_text(" "))

    raw = {"url": url, "title": get_title(soup), "project_name": get_project_name(soup)}
    raw.update(get_badges(soup, body_text))
    raw.update(get_price_info(soup, body_text))
    raw.update(get_property_details(body_text))
    raw.update(get_stats(body_text))
    raw.update(get_agent_info(soup))
    raw.update(get_contacts(soup, body_text))
    raw.update(get_images(soup))
    raw.update(get_location(soup))
    raw.update(get_description(soup))
    raw.update(get_dates(soup))
    raw.update(get_nearby_places(soup))
    raw.update(get_facilities(soup))
    return raw


async def extract(page, url):
    html = await page.content()
    return parse_detail_html(html, url)
