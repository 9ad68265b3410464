"""
Palate Collectif - taste together.
A Streamlit app for wine tasting events: attendees rate wines and compare notes,
admins run events, curators keep the shared wine list clean.
"""

import sys
from pathlib import Path

import streamlit as st
import pandas as pd
import plotly.graph_objects as go

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from palate import analytics, auth, buddies, curation, exports, health, organizations, staff
from palate import events_repo, ratings_repo, wines_repo
from palate.config import TEMP_ACCOUNT_DAYS
from palate.constants import HealthStatus, OrgRole, Role, SessionKeys, UIConstants, WineType, BeverageType, PricePoint
from palate.error_handling import AuthorizationError, ErrorContext, PalateError, user_message
from palate.recommendations import get_recommendations
from palate.schema import EventForm, EventWine, RatingForm, UserWineForm, WineForm
from palate.supabase_session import get_supabase_client
from palate.taste_profile import build_taste_profile
from palate.utils import format_date, format_rating, truncate, utcnow, wine_emoji
from pydantic import ValidationError

# Page configuration
st.set_page_config(
    page_title="Palate Collectif",
    page_icon="🍷",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    :root {
        --wine-red: #800020;
        --text-secondary: #A0A0A8;
        --border-subtle: rgba(255, 255, 255, 0.1);
    }
    .main-title { font-size: 2.4rem; font-weight: 800; margin-bottom: 0; }
    .subtitle { color: var(--text-secondary); margin-top: 4px; }
    .reason-chip {
        display: inline-block;
        padding: 2px 10px;
        margin: 2px 4px 2px 0;
        border-radius: 12px;
        border: 1px solid var(--border-subtle);
        font-size: 0.8rem;
    }
</style>
""", unsafe_allow_html=True)

WINE_TYPES = [t.value for t in WineType]
PRICE_POINTS = [""] + [p.value for p in PricePoint]
BEVERAGE_TYPES = [b.value for b in BeverageType]


# =======================
# SHARED HELPERS
# =======================

def show_error(error: Exception):
    """Render an exception as the user-facing message."""
    st.error(user_message(error))


@st.cache_data(ttl=300)
def load_master_wines(_sb, limit: int = 100):
    """Master list for pickers (cached for 5 minutes)."""
    return wines_repo.list_master_wines(_sb, limit)


def create_distribution_chart(distribution):
    """Bar chart of how many ratings each star level received."""
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=[f"{star}★" for star in range(1, 6)],
        y=distribution,
        marker=dict(color='#800020'),
        text=distribution,
        textposition='outside',
    ))
    fig.update_layout(
        height=260,
        margin=dict(l=10, r=10, t=10, b=10),
        yaxis=dict(title="Ratings", rangemode='tozero'),
        showlegend=False,
    )
    return fig


def create_breakdown_chart(labels, values, title: str):
    """Horizontal bar chart for preference and type breakdowns."""
    fig = go.Figure(go.Bar(
        x=values,
        y=labels,
        orientation='h',
        marker=dict(color='rgba(128, 0, 32, 0.7)'),
    ))
    fig.update_layout(
        title=title,
        height=max(200, 40 * len(labels) + 80),
        margin=dict(l=10, r=10, t=40, b=10),
        yaxis=dict(autorange='reversed'),
    )
    return fig


def render_wine_header(wine):
    vintage = f" {wine['vintage']}" if wine.get('vintage') else ""
    st.markdown(f"### {wine_emoji(wine.get('wine_type'))} {wine['wine_name']}{vintage}")
    details = [wine.get('producer'), wine.get('region'), wine.get('country')]
    st.caption(" · ".join(d for d in details if d))


def render_event_results(event, wines, ratings):
    """Shared results view, shown to attendees once an event closes."""
    report = analytics.event_analytics(wines, ratings)
    col1, col2, col3 = st.columns(3)
    col1.metric("Tasters", report.total_participants)
    col2.metric("Ratings", report.total_ratings)
    col3.metric("Average", f"{format_rating(report.average_rating)}★")

    st.plotly_chart(create_distribution_chart(report.rating_distribution), width="stretch",
                    key=f"results_dist_{event['id']}")

    if report.top_wines:
        st.markdown("#### 🏆 Top wines")
        for position, wine in enumerate(report.top_wines[:5], start=1):
            st.write(f"{position}. **{wine.wine_name}** {wine.producer or ''} "
                     f"{format_rating(wine.avg_rating)}★ ({wine.rating_count} ratings)")

    if report.most_divisive:
        divisive = report.most_divisive
        st.info(f"🎭 Most divisive: **{divisive.wine_name}** "
                f"({divisive.min_rating}★ to {divisive.max_rating}★)")


# =======================
# ATTENDEE PAGES
# =======================

def render_join(sb):
    st.markdown("## 🎟️ Join an event")

    with st.form("join_event"):
        event_code = st.text_input("Event code", max_chars=12, placeholder="e.g. WINE24")
        display_name = st.text_input("Your name (optional)")
        email = st.text_input("Ticket email (optional)")
        submitted = st.form_submit_button("Join", type="primary")

    if submitted:
        try:
            profile, event = auth.join_event(sb, st.session_state, event_code, display_name, email)
        except PalateError as e:
            show_error(e)
            return
        expiry = f" Your guest account lasts {TEMP_ACCOUNT_DAYS} days." if profile.get('is_temp_account') else ""
        st.success(f"Welcome, {profile['display_name']}! You're in **{event['event_name']}**.{expiry}")
        st.rerun()

    if auth.current_attendee_id(st.session_state):
        return
    with st.expander("Kept your ratings? Sign in"):
        with st.form("attendee_sign_in"):
            email = st.text_input("Email", key="attendee_email")
            password = st.text_input("Password", type="password", key="attendee_password")
            signed_in = st.form_submit_button("Sign in")
        if signed_in:
            try:
                auth.sign_in_attendee(sb, st.session_state, email, password)
            except PalateError as e:
                show_error(e)
                return
            st.rerun()


def render_booth(sb, booth_code: str):
    """Email-only entry for booth events."""
    try:
        event = events_repo.get_event_by_code(sb, booth_code)
    except PalateError as e:
        show_error(e)
        return

    if not event.get('is_booth_mode'):
        st.warning("This event uses an event code. Join from the Join page.")
        return

    if event.get('booth_logo_url'):
        st.image(event['booth_logo_url'], width=160)
    st.markdown(f"## {event['event_name']}")
    st.caption(event.get('booth_welcome_message') or "Welcome to our wine tasting experience")

    if st.session_state.get(SessionKeys.BOOTH_EVENT) == event['id']:
        render_event(sb)
        return

    with st.form("booth_sign_in"):
        email = st.text_input("Email")
        submitted = st.form_submit_button("Start tasting", type="primary")

    if submitted:
        try:
            auth.booth_sign_in(sb, st.session_state, event, email)
        except PalateError as e:
            show_error(e)
            return
        st.rerun()


def current_event_id():
    return st.session_state.get(SessionKeys.CURRENT_EVENT) or st.session_state.get(SessionKeys.BOOTH_EVENT)


def render_rating_form(sb, user_id, wine, existing):
    with st.form(f"rate_{wine['id']}"):
        rating = st.slider("Rating", 1, 5, value=(existing or {}).get('rating') or 3, format="%d★")
        notes = st.text_area("Notes", value=(existing or {}).get('personal_notes') or "", max_chars=2000)
        would_buy = st.checkbox("I'd buy this", value=bool((existing or {}).get('would_buy')))
        submitted = st.form_submit_button("Update rating" if existing else "Save rating")

    if submitted:
        try:
            form = RatingForm(rating=rating, personal_notes=notes, would_buy=would_buy)
            updated = ratings_repo.save_rating(sb, user_id, wine['id'], form)
        except (PalateError, ValidationError) as e:
            show_error(e)
            return
        st.toast("Rating updated!" if updated else "Rating saved!")
        st.rerun()


def render_event(sb):
    try:
        profile = auth.require_role(sb, st.session_state, Role.ATTENDEE)
    except AuthorizationError as e:
        st.warning(e.message)
        return

    event_id = current_event_id()
    if not event_id:
        st.info("👆 Join an event to start rating")
        return

    try:
        event = events_repo.get_event(sb, event_id)
        wines = wines_repo.list_event_wines(sb, event_id)
        my_ratings = ratings_repo.list_user_ratings_for_wines(sb, profile.id, [w['id'] for w in wines])
    except PalateError as e:
        show_error(e)
        return

    st.markdown(f"## 🍷 {event['event_name']}")
    st.caption(f"{format_date(event.get('event_date'))} · {event.get('location') or ''}")
    st.progress(len(my_ratings) / len(wines) if wines else 0.0,
                text=f"{len(my_ratings)} of {len(wines)} wines rated")

    if buddies.is_event_closed(event):
        with st.expander("📊 Event results", expanded=True):
            with ErrorContext("load event results", fallback_value=[]) as ctx:
                ratings = ratings_repo.list_ratings_for_wines(sb, [w['id'] for w in wines])
                render_event_results(event, wines, ratings)
            if ctx.error:
                st.error(ctx.message)

    current_stop = None
    for wine in wines:
        stop = (wine.get('event_locations') or {}).get('location_name')
        if stop and stop != current_stop:
            st.markdown(f"#### 📍 {stop}")
            current_stop = stop

        existing = my_ratings.get(wine['id'])
        label = f"{wine_emoji(wine.get('wine_type'))} {wine['wine_name']}"
        if existing:
            label += f"  ·  {existing['rating']}★"
        with st.expander(label):
            render_wine_header(wine)
            if wine.get('sommelier_notes'):
                st.write(wine['sommelier_notes'])
            render_rating_form(sb, profile.id, wine, existing)


def render_profile(sb):
    try:
        profile = auth.require_role(sb, st.session_state, Role.ATTENDEE)
        ratings = ratings_repo.list_user_ratings(sb, profile.id)
    except PalateError as e:
        show_error(e)
        return

    st.markdown(f"## 👤 {profile.display_name}")
    if profile.account_expires_at:
        st.caption(f"Guest account until {format_date(profile.account_expires_at)}")

    taste = build_taste_profile(profile.id, ratings)
    if taste is None:
        st.info("Rate a few wines to see your taste profile")
    else:
        col1, col2, col3 = st.columns(3)
        col1.metric("Wines rated", taste.total_ratings)
        col2.metric("Average", f"{format_rating(taste.average_rating)}★")
        col3.metric("Would buy", f"{taste.would_buy_rate:.0%}")

        types = analytics.personal_breakdown(ratings, 'wine_type')
        regions = analytics.personal_breakdown(ratings, 'region')
        st.write(f"**Favourite type:** {analytics.favorite(types) or '-'}  ·  "
                 f"**Favourite region:** {analytics.favorite(regions) or '-'}")

        if taste.preferred_types:
            labels, values = zip(*taste.preferred_types)
            st.plotly_chart(create_breakdown_chart(list(labels), list(values), "Type preference"),
                            width="stretch", key="profile_types")
        if taste.flavor_profile:
            st.write("**Flavors you notice:** " + ", ".join(taste.top_descriptors))

        st.download_button(
            label="📥 Download my ratings (CSV)",
            data=exports.ratings_csv(ratings),
            file_name="palate_ratings.csv",
            mime="text/csv",
        )

    if profile.is_temp_account:
        st.markdown("---")
        render_convert_account(sb, profile)

    st.markdown("---")
    render_collection(sb, profile.id)


def render_convert_account(sb, profile):
    """Keep a guest's ratings by turning the account into a permanent one."""
    st.markdown("### 🔐 Keep your ratings")
    st.caption("Create a password so your tasting history stays after your guest account expires.")

    with st.form("convert_account"):
        email = st.text_input("Email", value=profile.eventbrite_email or "")
        name = st.text_input("Display name", value=profile.display_name or "")
        password = st.text_input("Password", type="password")
        confirm = st.text_input("Confirm password", type="password")
        submitted = st.form_submit_button("Create account", type="primary")

    if submitted:
        if password != confirm:
            st.error("Passwords do not match")
            return
        try:
            auth.convert_account(sb, st.session_state, profile, email, password, name)
        except PalateError as e:
            show_error(e)
            return
        st.success("Your account is permanent. Sign in from the Join page next time.")
        st.rerun()


def render_favorites(sb):
    try:
        profile = auth.require_role(sb, st.session_state, Role.ATTENDEE)
        ratings = ratings_repo.list_user_ratings(sb, profile.id)
    except PalateError as e:
        show_error(e)
        return

    st.markdown("## ⭐ Favourites")
    labels = {'all': "All rated", 'would_buy': "Would buy", 'top_rated': "Top rated"}
    col1, col2 = st.columns([3, 1])
    kind = col1.radio("Show", list(labels), format_func=labels.get, horizontal=True, key="favorites_filter")
    sort = col2.selectbox("Sort by", analytics.FAVORITE_SORTS, key="favorites_sort",
                          format_func=lambda s: s.capitalize())

    wines = analytics.favorite_wines(ratings, kind, sort)
    if not wines:
        st.info("Nothing here yet. Rate wines at an event to build your list.")
        return

    for rating in wines:
        wine = rating.get('event_wines') or {}
        with st.container(border=True):
            col1, col2 = st.columns([4, 1])
            vintage = f" {wine['vintage']}" if wine.get('vintage') else ""
            col1.markdown(f"**{wine_emoji(wine.get('wine_type'))} {wine.get('wine_name') or 'Unknown'}{vintage}**")
            col1.caption(" · ".join(d for d in [wine.get('producer'), wine.get('region')] if d))
            col2.write(f"{format_rating(rating.get('rating') or 0)}★" + ("  🛒" if rating.get('would_buy') else ""))
            if rating.get('personal_notes'):
                st.write(truncate(rating['personal_notes'], 200))


def render_collection(sb, user_id):
    """Wines logged outside events; unknown ones go to curator review."""
    st.markdown("### 🗂️ My collection")

    search = st.text_input("Search the wine list", key="collection_search")
    master = None
    if search:
        try:
            matches = wines_repo.search_master_wines(sb, search)
        except PalateError as e:
            show_error(e)
            matches = []
        options = {"(not listed - add manually)": None}
        options.update({f"{m['wine_name']} {m.get('producer') or ''} {m.get('vintage') or ''}".strip(): m
                        for m in matches})
        master = options[st.selectbox("Matches", list(options), key="collection_match")]

    with st.form("add_user_wine"):
        wine_name = st.text_input("Wine name", value=(master or {}).get('wine_name') or search)
        producer = st.text_input("Producer", value=(master or {}).get('producer') or "")
        vintage = st.number_input("Vintage", min_value=0, max_value=2100,
                                  value=int((master or {}).get('vintage') or 0))
        wine_type = st.selectbox("Type", WINE_TYPES)
        region = st.text_input("Region", value=(master or {}).get('region') or "")
        notes = st.text_area("Notes")
        submitted = st.form_submit_button("Add to collection")

    if submitted:
        try:
            form = UserWineForm(
                wine_name=wine_name, producer=producer, vintage=vintage or None,
                wine_type=wine_type, region=region, personal_notes=notes,
            )
            wines_repo.submit_user_wine(sb, user_id, form, master)
        except (PalateError, ValidationError) as e:
            show_error(e)
            return
        st.success("Wine added to your collection" if master
                   else "Wine added! It will be reviewed and added to our database.")

    with ErrorContext("load collection", fallback_value=[]) as ctx:
        collection = wines_repo.list_user_wines(sb, user_id=user_id)
        if collection:
            df = pd.DataFrame(collection)
            st.dataframe(df[[c for c in ['wine_name', 'producer', 'vintage', 'status'] if c in df.columns]],
                         hide_index=True, width="stretch")
    if ctx.error:
        st.error(ctx.message)


def render_recommendations(sb):
    try:
        profile = auth.require_role(sb, st.session_state, Role.ATTENDEE)
    except AuthorizationError as e:
        st.warning(e.message)
        return

    st.markdown("## ✨ Recommended for you")
    source = st.radio("From", ["all", "event", "master"], horizontal=True,
                      format_func={"all": "Everywhere", "event": "This event", "master": "Wine list"}.get)
    event_id = current_event_id() if source == "event" else None

    try:
        recommendations = get_recommendations(sb, profile.id, event_id=event_id, source=source)
    except PalateError as e:
        show_error(e)
        return

    if not recommendations:
        st.info("No recommendations yet. Rate a few more wines!")
        return

    for rec in recommendations:
        with st.container(border=True):
            col1, col2 = st.columns([4, 1])
            with col1:
                render_wine_header(rec.wine)
                chips = "".join(f'<span class="reason-chip">{reason}</span>' for reason in rec.match_reasons)
                st.markdown(chips, unsafe_allow_html=True)
            col2.metric("Match", f"{rec.match_score:.0f}%")


def render_buddies(sb):
    try:
        profile = auth.require_role(sb, st.session_state, Role.ATTENDEE)
    except AuthorizationError as e:
        st.warning(e.message)
        return

    event_id = current_event_id()
    if not event_id:
        st.info("👆 Join an event to connect with buddies")
        return

    st.markdown("## 🤝 Tasting buddies")

    col1, col2 = st.columns(2)
    with col1:
        try:
            code = buddies.get_or_create_buddy_code(sb, profile.id, event_id)
            st.metric("Your buddy code", code)
            st.caption("Share it with a friend at this event")
        except PalateError as e:
            show_error(e)

    with col2:
        with st.form("connect_buddy"):
            buddy_code = st.text_input("Friend's code", max_chars=4)
            submitted = st.form_submit_button("Connect")
        if submitted:
            try:
                connection = buddies.connect_with_buddy(sb, profile.id, buddy_code, event_id)
                st.success(f"{connection.message} ({connection.buddy_name})")
            except PalateError as e:
                show_error(e)

    try:
        event = events_repo.get_event(sb, event_id)
        wines = wines_repo.list_event_wines(sb, event_id)
        past_buddies = buddies.get_past_buddies_for_event(sb, profile.id, event_id)
    except PalateError as e:
        show_error(e)
        return

    if not past_buddies:
        st.info("No buddies yet")
        return

    closed = buddies.is_event_closed(event)
    if not closed:
        st.caption("Comparisons unlock when the event closes")

    for entry in past_buddies:
        buddy = entry['buddy']
        with st.expander(f"{'⭐ ' if buddy.is_permanent else ''}{buddy.buddy_name}"):
            if buddy.connected_at_event_name:
                st.caption(f"Met at {buddy.connected_at_event_name}")

            included = st.toggle("Include at this event", value=bool(entry['included']),
                                 key=f"include_{buddy.buddy_id}")
            if included != bool(entry['included']):
                with ErrorContext("update buddy inclusion", fallback_value=False) as ctx:
                    buddies.set_event_buddy_inclusion(sb, event_id, profile.id, buddy.buddy_id, included)
                if ctx.error:
                    st.error(ctx.message)

            if not buddy.is_permanent and st.button("Keep as buddy", key=f"perm_{buddy.buddy_id}"):
                try:
                    buddies.make_buddy_permanent(sb, profile.id, buddy.buddy_id)
                except PalateError as e:
                    show_error(e)
                else:
                    st.rerun()

            if closed and included:
                try:
                    comparison = buddies.get_buddy_comparison(sb, profile.id, buddy, wines)
                except PalateError as e:
                    show_error(e)
                    continue
                st.metric("Taste match", f"{comparison.taste_match_percent}%",
                          help=f"Over {comparison.common_wines} wines you both rated")
                for agreement in comparison.wines_agreed:
                    st.write(f"✅ {agreement.wine_name}: you {agreement.user_rating}★, "
                             f"{buddy.buddy_name} {agreement.buddy_rating}★")
                for agreement in comparison.wines_disagreed:
                    st.write(f"⚡ {agreement.wine_name}: you {agreement.user_rating}★, "
                             f"{buddy.buddy_name} {agreement.buddy_rating}★")


# =======================
# STAFF PAGES
# =======================

def render_staff_sign_in(sb, role: Role):
    st.markdown(f"## 🔐 {role.value.title()} sign in")
    with st.form(f"{role.value}_sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted:
        try:
            auth.sign_in_staff(sb, st.session_state, email, password, role)
        except PalateError as e:
            show_error(e)
            return
        st.rerun()


def require_staff(sb, role: Role):
    """Profile of the signed-in staff member, or None after rendering sign-in."""
    if not st.session_state.get(SessionKeys.for_role(role)):
        render_staff_sign_in(sb, role)
        return None
    try:
        return auth.require_role(sb, st.session_state, role)
    except AuthorizationError as e:
        st.error(e.message)
        auth.sign_out(sb, st.session_state, role)
        return None


def render_admin(sb):
    admin = require_staff(sb, Role.ADMIN)
    if admin is None:
        return

    with st.sidebar:
        st.write(f"Admin: **{admin.display_name}**")
        if st.button("Sign out", key="admin_sign_out"):
            auth.sign_out(sb, st.session_state, Role.ADMIN)
            st.rerun()

    st.markdown("## 🛠️ Event admin")
    try:
        events = events_repo.list_admin_events(sb, admin.id)
    except PalateError as e:
        show_error(e)
        return

    tab_events, tab_wines, tab_analytics = st.tabs(["📅 Events", "🍷 Wines", "📊 Analytics"])

    with tab_events:
        with st.expander("➕ New event"):
            with st.form("new_event"):
                event_name = st.text_input("Event name")
                event_code = st.text_input("Event code", max_chars=12)
                event_date = st.date_input("Date")
                location = st.text_input("Location")
                description = st.text_area("Description")
                is_booth_mode = st.checkbox("Booth mode (email sign-in)")
                submitted = st.form_submit_button("Create event", type="primary")
            if submitted:
                try:
                    form = EventForm(
                        event_name=event_name, event_code=event_code, event_date=event_date,
                        location=location or None, description=description or None,
                        is_booth_mode=is_booth_mode,
                    )
                    events_repo.create_event(sb, form, admin.id)
                except (PalateError, ValidationError) as e:
                    show_error(e)
                else:
                    st.success(f"Event {form.event_code} created")
                    st.rerun()

        for event in events:
            with st.container(border=True):
                col1, col2, col3, col4 = st.columns([3, 1, 1, 1])
                col1.markdown(f"**{event['event_name']}** `{event['event_code']}`  \n"
                              f"{format_date(event.get('event_date'))}")
                active = col2.toggle("Active", value=bool(event.get('is_active')), key=f"active_{event['id']}")
                if active != bool(event.get('is_active')):
                    events_repo.update_event(sb, event['id'], {"is_active": active})
                    st.rerun()
                if not event.get('is_closed') and col3.button("Close", key=f"close_{event['id']}"):
                    events_repo.close_event(sb, event['id'])
                    st.rerun()
                if col4.button("🗑️", key=f"delete_{event['id']}"):
                    events_repo.soft_delete_event(sb, event['id'])
                    st.rerun()

    if not events:
        with tab_wines:
            st.info("Create an event first")
        return

    event_labels = {f"{e['event_name']} ({e['event_code']})": e for e in events}

    with tab_wines:
        event = event_labels[st.selectbox("Event", list(event_labels), key="wines_event")]
        render_admin_wines(sb, event)

    with tab_analytics:
        render_admin_analytics(sb, events)


def render_admin_wines(sb, event):
    try:
        wines = wines_repo.list_event_wines(sb, event['id'])
        locations = events_repo.list_locations(sb, event['id'])
    except PalateError as e:
        show_error(e)
        return

    with st.expander("📍 Locations"):
        for location in locations:
            st.write(f"{location['location_order']}. {location['location_name']}")
        with st.form(f"location_{event['id']}"):
            name = st.text_input("Location name")
            address = st.text_input("Address")
            if st.form_submit_button("Add location") and name.strip():
                try:
                    events_repo.add_location(sb, event['id'], name, address)
                except PalateError as e:
                    show_error(e)
                else:
                    st.rerun()

    with st.expander("➕ Add wine"):
        masters = load_master_wines(sb)
        master_options = {"(new wine)": None}
        master_options.update({f"{m['wine_name']} {m.get('vintage') or ''}".strip(): m for m in masters})
        master = master_options[st.selectbox("From wine list", list(master_options), key="admin_master")] or {}
        location_options = {"(none)": None}
        location_options.update({l['location_name']: l['id'] for l in locations})

        with st.form(f"add_wine_{event['id']}"):
            wine_name = st.text_input("Wine name", value=master.get('wine_name') or "")
            producer = st.text_input("Producer", value=master.get('producer') or "")
            vintage = st.number_input("Vintage", min_value=0, max_value=2100, value=int(master.get('vintage') or 0))
            wine_type = st.selectbox("Type", WINE_TYPES)
            beverage_type = st.selectbox("Beverage", BEVERAGE_TYPES)
            region = st.text_input("Region", value=master.get('region') or "")
            country = st.text_input("Country", value=master.get('country') or "")
            price_point = st.selectbox("Price point", PRICE_POINTS)
            grapes = st.text_input("Grapes (comma separated)")
            styles = st.text_input("Styles (comma separated)")
            sommelier_notes = st.text_area("Sommelier notes", value=master.get('default_notes') or "")
            tasting_order = st.number_input("Tasting order", min_value=0, value=len(wines) + 1)
            location = st.selectbox("Location", list(location_options))
            submitted = st.form_submit_button("Add wine", type="primary")

        if submitted:
            try:
                form = WineForm(
                    wine_name=wine_name, producer=producer, vintage=vintage or None,
                    wine_type=wine_type, beverage_type=beverage_type, region=region, country=country,
                    price_point=price_point or None, sommelier_notes=sommelier_notes,
                    tasting_order=tasting_order, location_id=location_options[location],
                    wine_master_id=master.get('id'),
                    grape_varieties=[{"name": g.strip()} for g in grapes.split(",") if g.strip()],
                    wine_style=[s.strip() for s in styles.split(",") if s.strip()],
                )
                wines_repo.add_event_wine(sb, event['id'], form)
            except (PalateError, ValidationError) as e:
                show_error(e)
            else:
                st.rerun()

    with st.expander("📤 Bulk import (CSV)"):
        st.download_button("Download template", exports.IMPORT_TEMPLATE, "wine-import-template.csv", "text/csv")
        uploaded_file = st.file_uploader("CSV file", type=['csv'], key=f"import_{event['id']}")
        if uploaded_file is not None:
            try:
                forms, errors = exports.parse_wine_import(uploaded_file)
            except ValueError as e:
                st.error(f"❌ Invalid CSV: {e}")
                forms, errors = [], []
            for error in errors:
                st.warning(error)
            if forms and st.button(f"Import {len(forms)} wines", key=f"do_import_{event['id']}"):
                try:
                    for form in forms:
                        wines_repo.add_event_wine(sb, event['id'], form)
                except PalateError as e:
                    show_error(e)
                else:
                    st.success(f"Imported {len(forms)} wines")

    for wine in wines:
        col1, col2 = st.columns([5, 1])
        col1.write(f"{wine.get('tasting_order')}. {wine_emoji(wine.get('wine_type'))} **{wine['wine_name']}** "
                   f"{wine.get('producer') or ''}")
        if col2.button("🗑️", key=f"del_wine_{wine['id']}"):
            try:
                wines_repo.delete_event_wine(sb, wine['id'])
            except PalateError as e:
                show_error(e)
            else:
                st.rerun()
        with col1.expander("✏️ Edit"):
            render_edit_wine_form(sb, EventWine.model_validate(wine), location_options)


def render_edit_wine_form(sb, wine, location_options):
    location_ids = list(location_options.values())
    blends = {g.name: g.percentage for g in wine.grape_varieties}
    price_index = PRICE_POINTS.index(wine.price_point) if wine.price_point in PRICE_POINTS else 0

    with st.form(f"edit_wine_{wine.id}"):
        wine_name = st.text_input("Wine name", value=wine.wine_name)
        producer = st.text_input("Producer", value=wine.producer or "")
        vintage = st.number_input("Vintage", min_value=0, max_value=2100, value=int(wine.vintage or 0))
        wine_type = st.selectbox("Type", WINE_TYPES, index=WINE_TYPES.index(wine.wine_type))
        beverage_type = st.selectbox("Beverage", BEVERAGE_TYPES, index=BEVERAGE_TYPES.index(wine.beverage_type))
        region = st.text_input("Region", value=wine.region or "")
        country = st.text_input("Country", value=wine.country or "")
        price_point = st.selectbox("Price point", PRICE_POINTS, index=price_index)
        grapes = st.text_input("Grapes (comma separated)",
                               value=", ".join(g.name for g in wine.grape_varieties))
        styles = st.text_input("Styles (comma separated)", value=", ".join(wine.wine_style))
        sommelier_notes = st.text_area("Sommelier notes", value=wine.sommelier_notes or "")
        tasting_order = st.number_input("Tasting order", min_value=0, value=wine.tasting_order)
        location = st.selectbox(
            "Location", list(location_options),
            index=location_ids.index(wine.location_id) if wine.location_id in location_ids else 0,
        )
        submitted = st.form_submit_button("Save changes")

    if submitted:
        try:
            form = WineForm(
                wine_name=wine_name, producer=producer, vintage=vintage or None,
                wine_type=wine_type, beverage_type=beverage_type, region=region, country=country,
                price_point=price_point or None, sommelier_notes=sommelier_notes,
                tasting_order=tasting_order, location_id=location_options[location],
                grape_varieties=[
                    {"name": g.strip(), "percentage": blends.get(g.strip())} for g in grapes.split(",") if g.strip()
                ],
                wine_style=[s.strip() for s in styles.split(",") if s.strip()],
            )
            wines_repo.update_event_wine(sb, wine.id, form)
        except (PalateError, ValidationError) as e:
            show_error(e)
        else:
            st.toast(f"Saved \"{wine_name}\"")
            st.rerun()


def render_admin_analytics(sb, events):
    options = {"All events": None}
    options.update({f"{e['event_name']} ({e['event_code']})": e for e in events})
    selected = options[st.selectbox("Scope", list(options), key="analytics_scope")]
    scope = [selected] if selected else events

    try:
        wines = wines_repo.list_wines_for_events(sb, [e['id'] for e in scope])
        ratings = ratings_repo.list_ratings_for_wines(sb, [w['id'] for w in wines])
        descriptors = ratings_repo.list_descriptor_links(sb, [r.get('id') for r in ratings])
    except PalateError as e:
        show_error(e)
        return

    report = analytics.event_analytics(wines, ratings, descriptors)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Ratings", report.total_ratings)
    col2.metric("Tasters", report.total_participants)
    col3.metric("Average", f"{format_rating(report.average_rating)}★")
    col4.metric("Would buy", f"{report.would_buy_percent}%")

    st.plotly_chart(create_distribution_chart(report.rating_distribution), width="stretch",
                    key="admin_distribution")
    st.dataframe(pd.DataFrame(analytics.rating_distribution_table(ratings)), hide_index=True)

    if report.wine_rankings:
        st.dataframe(pd.DataFrame([
            {"Wine": w.wine_name, "Producer": w.producer, "Avg": w.avg_rating,
             "Ratings": w.rating_count, "Would buy %": w.would_buy_percent}
            for w in report.wine_rankings
        ]), hide_index=True, width="stretch")

    if report.type_breakdown:
        st.plotly_chart(create_breakdown_chart(
            [b.wine_type for b in report.type_breakdown],
            [b.count for b in report.type_breakdown],
            "Ratings by type"), width="stretch", key="admin_types")

    if report.top_descriptors:
        st.write("**Top descriptors:** " + ", ".join(
            f"{d['name']} ({d['count']})" for d in report.top_descriptors))

    if selected:
        render_exports(sb, selected, wines, ratings)


def render_exports(sb, event, wines, ratings):
    profiles = {}
    with ErrorContext("load profiles for export", fallback_value={}) as ctx:
        profiles = auth.load_profiles(sb, [r['user_id'] for r in ratings])
    if ctx.error:
        st.error(ctx.message)
    names = {pid: p.get('display_name') for pid, p in profiles.items()}

    st.markdown("#### 📥 Export")
    col1, col2, col3 = st.columns(3)
    reports = [
        (col1, "By wine", "wines", exports.wine_report(wines, ratings, names)),
        (col2, "By taster", "users", exports.taster_report(wines, ratings, profiles)),
        (col3, "All ratings", "detailed", exports.detailed_report(wines, ratings, names)),
    ]
    for column, label, kind, df in reports:
        column.download_button(label, exports.to_csv(df), exports.report_filename(event['event_name'], kind),
                               "text/csv", key=f"export_{kind}")


def render_curator(sb):
    curator = require_staff(sb, Role.CURATOR)
    if curator is None:
        return

    with st.sidebar:
        st.write(f"Curator: **{curator.display_name}**")
        if st.button("Sign out", key="curator_sign_out"):
            auth.sign_out(sb, st.session_state, Role.CURATOR)
            st.rerun()

    st.markdown("## 🔎 Curator")
    tab_review, tab_master, tab_health, tab_analytics, tab_staff, tab_groups = st.tabs(
        ["🕐 Review", "📚 Wine list", "🩺 Health", "📊 Platform", "🛡️ Staff", "👥 Groups"])

    with tab_review:
        render_review_queue(sb)

    with tab_master:
        with ErrorContext("load master wines", fallback_value=False) as ctx:
            st.dataframe(wines_repo.master_wines_frame(sb), hide_index=True, width="stretch")
        if ctx.error:
            st.error(ctx.message)

    with tab_health:
        render_health(sb)

    with tab_analytics:
        render_platform_analytics(sb)

    with tab_staff:
        render_staff(sb, curator.id)

    with tab_groups:
        render_groups(sb, curator.id)


def render_review_queue(sb):
    status = st.radio("Status", ["pending", "merged", "rejected"], horizontal=True, key="review_status")
    try:
        user_wines = wines_repo.list_user_wines(sb, status=status)
        duplicates = curation.find_duplicates_for_pending(sb, user_wines) if status == "pending" else {}
    except PalateError as e:
        show_error(e)
        return

    if not user_wines:
        st.info(f"No {status} wines")
        return

    for wine in user_wines:
        with st.container(border=True):
            render_wine_header(wine)
            st.caption(f"Submitted by {wine.get('user_name') or 'Unknown'}")
            if status != "pending":
                continue

            for candidate in duplicates.get(wine['id'], []):
                master = candidate.wine
                col1, col2 = st.columns([4, 1])
                col1.write(f"Possible duplicate: **{master['wine_name']}** {master.get('producer') or ''} "
                           f"{master.get('vintage') or ''} ({candidate.percent}% match)")
                if col2.button("Merge", key=f"merge_{wine['id']}_{master['id']}"):
                    try:
                        curation.merge_user_wine(sb, wine, master)
                    except PalateError as e:
                        show_error(e)
                    else:
                        st.toast(f"Merged with \"{master['wine_name']}\"")
                        st.rerun()

            col1, col2 = st.columns(2)
            if col1.button("✅ Approve", key=f"approve_{wine['id']}"):
                try:
                    curation.approve_user_wine(sb, wine)
                except PalateError as e:
                    show_error(e)
                else:
                    st.toast(f"\"{wine['wine_name']}\" added to master list")
                    st.rerun()
            if col2.button("❌ Reject", key=f"reject_{wine['id']}"):
                try:
                    curation.reject_user_wine(sb, wine['id'])
                except PalateError as e:
                    show_error(e)
                else:
                    st.rerun()


def render_platform_analytics(sb):
    try:
        events = events_repo.list_admin_events(sb)
        wines = wines_repo.list_wines_for_events(sb, [e['id'] for e in events])
        ratings = ratings_repo.list_all_ratings(sb)
        stats = analytics.platform_stats(
            wines_repo.count_master_wines(sb),
            wines_repo.count_event_wines(sb),
            events_repo.count_events(sb),
            ratings,
        )
        pending = curation.pending_count(sb)
    except PalateError as e:
        show_error(e)
        return

    col1, col2, col3, col4, col5 = st.columns(5)
    col1.metric("Master wines", stats.total_master_wines)
    col2.metric("Event wines", stats.total_event_wines)
    col3.metric("Events", stats.total_events)
    col4.metric("Ratings", stats.total_ratings)
    col5.metric("Pending review", pending)

    st.plotly_chart(create_distribution_chart(analytics.rating_distribution(ratings)), width="stretch",
                    key="platform_distribution")

    top = analytics.top_wines_across_events(wines, ratings)
    if top:
        st.markdown("#### 🏆 Top wines across events")
        for position, wine in enumerate(top, start=1):
            st.write(f"{position}. **{truncate(wine.wine_name, 40)}** {wine.producer or ''} "
                     f"{format_rating(wine.avg_rating)}★ ({wine.rating_count} ratings)")

    by_country = analytics.count_by(wines, 'country')
    if by_country:
        st.plotly_chart(create_breakdown_chart(
            [c['country'] for c in by_country[:10]],
            [c['count'] for c in by_country[:10]],
            "Wines by country"), width="stretch", key="platform_countries")


def render_health(sb):
    """Data health dashboard: one row per check with the offending records."""
    col1, col2 = st.columns([4, 1])
    if col2.button("🔄 Refresh", key="health_refresh"):
        st.rerun()

    try:
        checks = health.run_health_checks(sb)
    except PalateError as e:
        show_error(e)
        return

    col1.metric("Health score", f"{health.health_score(checks)}%")
    for check in checks:
        icon = UIConstants.HEALTH_ICONS[HealthStatus(check.status)]
        with st.container(border=True):
            st.markdown(f"{icon} **{check.name}** · {check.count}")
            st.caption(check.description)
            if check.items:
                with st.expander("Show records"):
                    st.dataframe(pd.DataFrame(check.items), hide_index=True, width="stretch")


def render_staff(sb, curator_id):
    with st.form("grant_admin"):
        col1, col2 = st.columns(2)
        name = col1.text_input("Name")
        email = col2.text_input("Email")
        if st.form_submit_button("Grant admin access"):
            try:
                granted = staff.grant_admin(sb, name, email)
            except PalateError as e:
                show_error(e)
            else:
                st.toast(f"{granted['display_name']} is now an admin")
                st.rerun()

    try:
        admins = staff.list_admins(sb)
    except PalateError as e:
        show_error(e)
        return

    for admin in admins:
        col1, col2, col3 = st.columns([3, 1, 1])
        role = "Curator" if admin['is_curator'] else "Admin"
        col1.write(f"**{admin.get('display_name') or admin['id']}** · {role} · "
                   f"{admin['event_count']} events")
        col1.caption(admin.get('eventbrite_email') or admin.get('email') or "")
        if admin['id'] == curator_id:
            col2.caption("You")
            continue

        try:
            if col2.button("Remove curator" if admin['is_curator'] else "Make curator",
                           key=f"curator_{admin['id']}"):
                staff.set_curator(sb, admin['id'], not admin['is_curator'], curator_id)
                st.rerun()
            if col3.button("Remove", key=f"revoke_{admin['id']}"):
                staff.revoke_admin(sb, admin['id'], curator_id)
                st.rerun()
        except PalateError as e:
            show_error(e)


def render_groups(sb, curator_id):
    with st.form("new_group"):
        name = st.text_input("Group name")
        description = st.text_input("Description")
        if st.form_submit_button("Create group"):
            try:
                organizations.create_organization(sb, name, curator_id, description)
            except PalateError as e:
                show_error(e)
            else:
                st.rerun()

    try:
        groups = organizations.list_organizations(sb)
    except PalateError as e:
        show_error(e)
        return

    roles = [r.value for r in OrgRole]
    for org in groups:
        with st.expander(f"{org['name']} · {org['member_count']} members · {org['event_count']} events"):
            try:
                members = organizations.list_members(sb, org['id'])
                candidates = organizations.list_admin_candidates(sb, org['id'])
            except PalateError as e:
                show_error(e)
                continue

            for member in members:
                col1, col2, col3 = st.columns([3, 2, 1])
                col1.write((member.get('profiles') or {}).get('display_name') or member['profile_id'])
                role = col2.selectbox("Role", roles, index=roles.index(member['role']),
                                      key=f"role_{member['id']}", label_visibility="collapsed",
                                      format_func=lambda r: UIConstants.ROLE_LABELS[OrgRole(r)])
                if role != member['role']:
                    organizations.update_member_role(sb, member['id'], OrgRole(role))
                    st.rerun()
                if col3.button("Remove", key=f"remove_{member['id']}"):
                    organizations.remove_member(sb, member['id'])
                    st.rerun()

            if candidates:
                labels = {c.get('display_name') or c['id']: c['id'] for c in candidates}
                col1, col2 = st.columns([3, 1])
                choice = col1.selectbox("Add admin", list(labels), key=f"add_{org['id']}")
                if col2.button("Add", key=f"add_btn_{org['id']}"):
                    try:
                        organizations.add_member(sb, org['id'], labels[choice], OrgRole.MEMBER, curator_id)
                    except PalateError as e:
                        show_error(e)
                    else:
                        st.rerun()

            with st.form(f"edit_group_{org['id']}"):
                new_name = st.text_input("Name", value=org['name'])
                new_description = st.text_input("Description", value=org.get('description') or "")
                col1, col2 = st.columns(2)
                save = col1.form_submit_button("Save")
                delete = col2.form_submit_button("🗑️ Delete group")

            try:
                if save:
                    organizations.update_organization(sb, org['id'], new_name, new_description)
                if delete:
                    organizations.delete_organization(sb, org['id'])
            except PalateError as e:
                show_error(e)
            else:
                if save or delete:
                    st.rerun()


# =======================
# MAIN
# =======================

PAGES = {
    "🎟️ Join": render_join,
    "🍷 Event": render_event,
    "👤 Profile": render_profile,
    "⭐ Favourites": render_favorites,
    "✨ Recommendations": render_recommendations,
    "🤝 Buddies": render_buddies,
    "🛠️ Admin": render_admin,
    "🔎 Curator": render_curator,
}


def main():
    st.markdown("""
<div style="text-align: center; margin-bottom: 24px;">
    <h1 class="main-title">🍷 Palate Collectif</h1>
    <p class="subtitle">Taste together.</p>
</div>
""", unsafe_allow_html=True)

    try:
        sb = get_supabase_client()
    except ValueError as e:
        st.error(f"⚠️ {e}. Set SUPABASE_URL and SUPABASE_KEY in Streamlit secrets or .env")
        st.stop()

    booth_code = st.query_params.get("booth")
    if booth_code:
        render_booth(sb, booth_code)
        return

    with st.sidebar:
        page = st.radio("Navigate", list(PAGES), label_visibility="collapsed")
        if auth.current_attendee_id(st.session_state):
            st.markdown("---")
            if st.button("Leave event"):
                auth.sign_out(sb, st.session_state, Role.ATTENDEE)
                st.rerun()
        st.caption(f"© {utcnow().year} Palate Collectif")

    PAGES[page](sb)


if __name__ == "__main__":
    main()
