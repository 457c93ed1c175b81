from __future__ import annotations

from html import escape

import streamlit as st

from completion import ProfileCompletion


I18N = {
    "en": {
        "app_title": "Study Abroad Student Portal",
        "subtitle": "Find universities, complete your profile and track every application in one place.",
        "get_started": "Get Started",
        "sign_in": "Sign In",
        "sign_up": "Create Account",
        "sign_out": "Sign Out",
        "email": "Email",
        "password": "Password",
        "first_name": "First name",
        "last_name": "Last name",
        "next": "Next",
        "back": "Back",
        "submit": "Submit",
        "submitting": "Saving...",
        "skip": "Skip for now",
        "language": "Language",
        "personal_title": "Complete Your Profile",
        "academic_title": "Academic Information",
        "step_identity": "Personal Details",
        "step_contact": "Contact Information",
        "step_address": "Address",
        "step_review": "Review",
        "step_education": "Education",
        "step_exams": "Exam Results",
        "step_documents": "Documents",
        "personal_saved": "Your personal information has been saved successfully!",
        "academic_saved": "Your academic information has been saved successfully!",
        "skip_personal": "You can complete your profile any time from the dashboard.",
        "skip_academic": "Please complete your academic information later for better application processing.",
        "fix_errors": "Please fix the highlighted fields before submitting.",
        "completion_title": "Complete your profile",
        "completion_body": "Finish onboarding before applying to programs. Your profile is {pct}% complete.",
        "complete_now": "Complete Profile",
        "later": "Later",
        "nav_home": "Home",
        "nav_profile": "Profile",
        "nav_universities": "Universities",
        "nav_programs": "Programs",
        "nav_applications": "Applications",
        "nav_chat": "Messages",
        "apply_now": "Apply Now",
        "contact_title": "Talk to an Advisor",
        "contact_sent": "Thank you! An advisor will contact you shortly.",
        "download_pdf": "Download PDF Summary",
        "download_json": "Download JSON Summary",
        "save": "Save Changes",
        "send": "Send",
    },
    "tr": {
        "app_title": "Yurt Dışı Eğitim Öğrenci Portalı",
        "subtitle": "Üniversiteleri keşfedin, profilinizi tamamlayın ve tüm başvurularınızı tek yerden takip edin.",
        "get_started": "Başlayın",
        "sign_in": "Giriş Yap",
        "sign_up": "Hesap Oluştur",
        "sign_out": "Çıkış Yap",
        "email": "E-posta",
        "password": "Şifre",
        "first_name": "Ad",
        "last_name": "Soyad",
        "next": "İleri",
        "back": "Geri",
        "submit": "Gönder",
        "submitting": "Kaydediliyor...",
        "skip": "Şimdilik atla",
        "language": "Dil",
        "personal_title": "Profilinizi Tamamlayın",
        "academic_title": "Akademik Bilgiler",
        "step_identity": "Kişisel Bilgiler",
        "step_contact": "İletişim Bilgileri",
        "step_address": "Adres",
        "step_review": "Gözden Geçir",
        "step_education": "Eğitim",
        "step_exams": "Sınav Sonuçları",
        "step_documents": "Belgeler",
        "personal_saved": "Kişisel bilgileriniz başarıyla kaydedildi!",
        "academic_saved": "Akademik bilgileriniz başarıyla kaydedildi!",
        "skip_personal": "Profilinizi istediğiniz zaman panelden tamamlayabilirsiniz.",
        "skip_academic": "Başvurularınızın daha iyi işlenmesi için akademik bilgilerinizi daha sonra tamamlayın.",
        "fix_errors": "Göndermeden önce işaretli alanları düzeltin.",
        "completion_title": "Profilinizi tamamlayın",
        "completion_body": "Programlara başvurmadan önce kaydı tamamlayın. Profiliniz %{pct} tamamlandı.",
        "complete_now": "Profili Tamamla",
        "later": "Daha Sonra",
        "nav_home": "Ana Sayfa",
        "nav_profile": "Profil",
        "nav_universities": "Üniversiteler",
        "nav_programs": "Programlar",
        "nav_applications": "Başvurular",
        "nav_chat": "Mesajlar",
        "apply_now": "Şimdi Başvur",
        "contact_title": "Bir Danışmanla Görüşün",
        "contact_sent": "Teşekkürler! Bir danışman kısa süre içinde sizinle iletişime geçecek.",
        "download_pdf": "PDF Özeti İndir",
        "download_json": "JSON Özeti İndir",
        "save": "Değişiklikleri Kaydet",
        "send": "Gönder",
    },
}

STATUS_COLORS = {
    "draft": ("#fff7ed", "#9a3412"),
    "submitted": ("#eef2ff", "#3730a3"),
    "under_review": ("#eff6ff", "#1d4ed8"),
    "accepted": ("#ecfdf5", "#047857"),
    "rejected": ("#fef2f2", "#b91c1c"),
}


@st.cache_data
def get_i18n(language: str) -> dict[str, str]:
    return I18N.get(language, I18N["en"])


def t(language: str, key: str) -> str:
    return get_i18n(language).get(key, key)


def inject_portal_css() -> None:
    st.markdown(
        """
        <style>
            :root {
                --primary-blue: #0D47A1;
                --primary-orange: #FF7A00;
                --text-main: #1b2f4b;
                --text-muted: #4d6581;
                --surface: #ffffff;
                --surface-soft: #f5f9ff;
                --border: #d1def1;
            }
            [data-testid="stAppViewContainer"] {
                background: linear-gradient(180deg, #ffffff 0%, #f4f8ff 100%);
                color: var(--text-main);
            }
            .block-container {max-width: min(1280px, 95vw) !important; padding-top: 0.6rem !important;}
            .portal-hero {
                border-radius: 18px;
                padding: 2rem 1.6rem;
                margin-bottom: 1.2rem;
                color: #ffffff;
                background: linear-gradient(132deg, #0D47A1 0%, #1E5CCB 54%, #FF7A00 100%);
            }
            .portal-hero h1 {font-size: clamp(1.6rem, 3vw, 2.4rem); margin-bottom: 0.4rem; color: #ffffff;}
            .portal-hero p {font-size: 1.05rem; margin: 0; opacity: 0.95;}
            .portal-stepper {display: flex; gap: 0.32rem; flex-wrap: wrap; margin-bottom: 0.5rem;}
            .portal-step {
                padding: 0.18rem 0.58rem;
                border-radius: 999px;
                border: 1px solid var(--border);
                color: #5a6f83;
                font-size: 0.74rem;
                background: var(--surface);
            }
            .portal-step.active {border-color: var(--primary-blue); background: var(--primary-blue); color: #ffffff;}
            .portal-step.done {border-color: #a6c4ea; background: #eaf2ff; color: #2f5f9e;}
            .portal-chip {
                display: inline-block;
                padding: 0.2rem 0.6rem;
                border-radius: 999px;
                background: #e8f0ff;
                margin-right: 0.4rem;
                margin-bottom: 0.3rem;
                font-size: 0.8rem;
                color: #325c90;
            }
            .portal-meter {margin-top: 0.4rem; margin-bottom: 0.45rem;}
            .portal-meter-head {
                display: flex;
                justify-content: space-between;
                align-items: center;
                font-size: 0.88rem;
                color: #45627e;
                margin-bottom: 0.2rem;
            }
            .portal-meter-track {
                width: 100%;
                height: 11px;
                border-radius: 999px;
                background: #dbe5f2;
                overflow: hidden;
                border: 1px solid #c4d4e9;
            }
            .portal-meter-fill {height: 100%; background: linear-gradient(90deg, var(--primary-blue), var(--primary-orange));}
            .portal-bubble {
                border-radius: 12px;
                padding: 0.55rem 0.8rem;
                margin-bottom: 0.45rem;
                max-width: 78%;
                font-size: 0.93rem;
            }
            .portal-bubble.own {margin-left: auto; background: var(--primary-blue); color: #ffffff;}
            .portal-bubble.other {background: #eef4ff; color: var(--text-main);}
            .portal-bubble small {display: block; opacity: 0.75; font-size: 0.72rem; margin-top: 0.2rem;}
            @media (max-width: 768px) {
                .portal-hero {padding: 1.3rem 1rem;}
                [data-testid="stButton"] button {min-height: 44px; font-size: 0.94rem;}
            }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_progress(step: int, total: int, labels: list[str] | None = None) -> None:
    chips = []
    for i in range(1, total + 1):
        klass = "portal-step"
        if i < step:
            klass += " done"
        elif i == step:
            klass += " active"
        label = labels[i - 1] if labels and len(labels) >= i else f"Step {i}"
        chips.append(f"<span class='{klass}'>{escape(label)}</span>")
    st.markdown(f"<div class='portal-stepper'>{''.join(chips)}</div>", unsafe_allow_html=True)
    render_meter("Progress", step / max(1, total), f"Step {step}/{total}")


def render_meter(label: str, pct: float, value_text: str | None = None) -> None:
    pct = max(0.0, min(1.0, pct))
    pct_text = value_text or f"{int(round(pct * 100))}%"
    st.markdown(
        f"""
        <div class="portal-meter">
            <div class="portal-meter-head">
                <span>{escape(label)}</span>
                <span>{escape(pct_text)}</span>
            </div>
            <div class="portal-meter-track">
                <div class="portal-meter-fill" style="width: {pct * 100:.1f}%;"></div>
            </div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def render_status_badge(status: str) -> None:
    background, color = STATUS_COLORS.get(status, ("#f3f4f6", "#374151"))
    st.markdown(
        f"<span class='portal-chip' style='background:{background};color:{color};'>{escape(status.replace('_', ' ').title())}</span>",
        unsafe_allow_html=True,
    )


def render_chips(values: list[str]) -> None:
    if values:
        st.markdown("".join(f"<span class='portal-chip'>{escape(v)}</span>" for v in values), unsafe_allow_html=True)


def render_chat_bubble(sender: str, content: str, sent_at: str, own: bool) -> None:
    klass = "own" if own else "other"
    st.markdown(
        f"<div class='portal-bubble {klass}'>{escape(content)}<small>{escape(sender)} · {escape(sent_at)}</small></div>",
        unsafe_allow_html=True,
    )


def render_completion_prompt(language: str, completion: ProfileCompletion, key: str) -> str | None:
    """Show the finish-your-profile prompt; returns "complete" or "later" when a button is pressed."""
    with st.container(border=True):
        st.markdown(f"**{t(language, 'completion_title')}**")
        st.write(t(language, "completion_body").format(pct=completion.completion_percentage))
        render_meter("Profile", completion.completion_percentage / 100)
        c1, c2 = st.columns(2)
        with c1:
            if st.button(t(language, "complete_now"), key=f"{key}_complete", type="primary", use_container_width=True):
                return "complete"
        with c2:
            if st.button(t(language, "later"), key=f"{key}_later", use_container_width=True):
                return "later"
    return None
