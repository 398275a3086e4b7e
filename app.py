# app.py
import os
from urllib.parse import quote_plus

import streamlit as st
import requests

st.set_page_config(page_title="Gift Ideas", layout="centered")
st.title("🎁 Gift Ideas")

API_URL = os.getenv("GIFT_API_URL", "http://127.0.0.1:8000/giftIdeas")


def build_body(occasion, budget, name, locale, interests):
    return {
        "occasion": occasion or None,
        "budget": budget,
        "recipient": {"name": name} if name else {},
        "locale": locale or None,
        "interests": [s.strip() for s in interests.split(",") if s.strip()],
    }


def render_idea(idx, idea):
    with st.container(border=True):
        st.subheader(f"{idx}. {idea['title']}")
        if idea.get("rationale"):
            st.write(idea["rationale"])
        bits = []
        if idea.get("approxPriceUSD") is not None:
            bits.append(f"**~${idea['approxPriceUSD']:.0f}**")
        if idea.get("categories"):
            bits.append(", ".join(idea["categories"]))
        bits.append("⭐" * int(idea.get("wowFactor") or 3))
        st.write(" • ".join(bits))
        hint = idea.get("urlHint") or idea["title"]
        st.link_button("Search", f"https://www.google.com/search?q={quote_plus(hint)}")


occasion = st.text_input("Occasion", "Birthday")
budget = st.text_input("Budget", "$25-$100")
name = st.text_input("Recipient name (optional)")
locale = st.text_input("Locale", "en-US")
interests = st.text_input("Interests (comma separated)")

if st.button("Get Gift Ideas"):
    payload = build_body(occasion, budget, name, locale, interests)
    with st.spinner("Generating ideas..."):
        try:
            r = requests.post(API_URL, json=payload, timeout=60)
            if r.status_code == 200:
                data = r.json()
                meta = data.get("meta") or {}
                if meta.get("source") == "fallback":
                    st.info(f"Showing our standard picks ({meta.get('reason')}).")
                for i, idea in enumerate(data.get("ideas", []), start=1):
                    render_idea(i, idea)
            else:
                st.error(f"API error: {r.status_code} - {r.text}")
        except Exception as e:
            st.error(f"Request failed: {e}")
