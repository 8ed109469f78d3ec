"""English UI strings for WakeMe Travel."""

from typing import Any

UI_STRINGS: dict[str, dict[str, str]] = {
    "telegram": {
        # Keyboard buttons
        "bus_button": "🚌 Bus",
        "train_button": "🚆 Train",
        "share_contact_button": "📞 Share my phone",
        "confirm_train_button": "✅ YES",
        "cancel_train_button": "❌ NO",
        # Commands
        "welcome_message": (
            "👋 Welcome to WakeMe Travel, {name}!\n\n"
            "I'll make sure you never miss your stop again.\n\n"
            "Where are you travelling today?"
        ),
        "help_message": (
            "🆘 *WakeMe Travel Help*\n\n"
            "*Commands:*\n"
            "/start - Start the bot\n"
            "/status - Check active trip\n"
            "/cancel - Cancel alert\n"
            "/awake - Confirm you're awake\n"
            "/help - Show this help"
        ),
        "no_active_trip": "📊 No active trips\n\nStart new journey:",
        "status_bus": (
            "📊 *Bus Journey Status*\n\n"
            "📍 Destination: {destination}\n"
            "📏 Distance: {distance_km:.1f} km\n"
            "⏱️ ETA: ~{eta_minutes} mins\n"
            "🔄 Last update: {minutes_ago} min(s) ago"
        ),
        "status_bus_pending": (
            "📊 *Active Trip*\n\n"
            "🚌 Bus Journey\n"
            "📍 Destination: {destination}\n"
            "🟢 Waiting for your live location"
        ),
        "status_train": (
            "📊 *Active Trip*\n\n"
            "🚆 {train_name} ({train_number})\n"
            "📍 {origin} → {destination}\n"
            "🚉 Now at: {current_station}\n"
            "🔢 Stations left: {stations_remaining}\n"
            "📏 Distance left: {distance_km:.0f} km"
        ),
        "status_train_pending": (
            "📊 *Active Trip*\n\n"
            "🚆 {train_name} ({train_number})\n"
            "📍 {origin} → {destination}\n"
            "⏳ Waiting for live running status"
        ),
        "trip_status_line": "Status: {status}",
        "trip_cancelled": "❌ Alert cancelled\nJourney tracking stopped",
        "awake_confirmed_manual": "✅ Great! Alert stopped.\nHave a safe journey! 🎉",
        "no_active_alert": "No active alert found.",
        "unknown_input": "I didn't understand that.\n\nUse the buttons below:",
        "start_first": "Please start a journey first using /start",
        # Bus setup
        "bus_setup": (
            "🚌 *Bus Journey Setup*\n\n"
            "Share your current location 📍\n"
            "(Tap 📎 → Location)"
        ),
        "origin_captured": (
            "📍 Got your location!\n\n"
            "Where are you going?\n"
            "(Send destination name or share destination location)"
        ),
        "destination_not_found": (
            "⚠️ I couldn't find \"{destination}\".\n"
            "Try a nearby city name or share the destination location."
        ),
        "default_destination_name": "Your destination",
        # Train setup
        "train_setup": (
            "🚆 *Train Journey Setup*\n\n"
            "Send your PNR number\n(10 digits from your ticket)"
        ),
        "ticket_found": (
            "✅ *Found your ticket!*\n\n"
            "🚆 {train_name} ({train_number})\n"
            "📍 {origin} → {destination}\n"
            "🗓️ {journey_date}, {departure_time}\n"
            "🏁 Arrives: {arrival_time}\n\n"
            "Is this correct?"
        ),
        "ticket_not_found": "⚠️ I couldn't fetch PNR {pnr}. Please check the number and try again.",
        "train_trip_cancelled": "Trip cancelled. Send new PNR to try again.",
        # Phone
        "phone_required": (
            "📞 *Phone Number Required*\n\n"
            "I need your phone number to make wake-up calls.\n\n"
            "Tap the button below to share:"
        ),
        "phone_saved": "✅ Phone number saved!",
        "phone_not_own": "❌ Please share YOUR OWN contact number.\nTap the button below:",
        "phone_invalid": "⚠️ That phone number doesn't look right. Please share your contact again.",
        "trip_active": (
            "✅ *All Set!*\n\n"
            "{mode_icon} {mode_label} Journey Active\n"
            "📍 Destination: {destination}\n"
            "⏰ I'll call you before arrival\n"
            "📞 {phone}\n\n"
            "🟢 TRACKING STARTED\n\n"
            "Have a safe journey! 😴"
        ),
        # Proximity
        "zone_info": "ℹ️ Approaching destination\n📍 {distance_km:.1f} km to {destination}",
        "zone_warning": (
            "⚠️ Getting close!\n"
            "📍 {distance_km:.1f} km to {destination}\n"
            "⏰ ~{eta_minutes} mins remaining"
        ),
        "alert_bus": (
            "🚨 APPROACHING DESTINATION!\n"
            "📍 {distance_km:.1f} km to {destination}\n"
            "📞 You'll receive a wake-up call shortly..."
        ),
        "alert_train": (
            "🚨 APPROACHING DESTINATION!\n"
            "🚉 {stations_remaining} station(s), {distance_km:.0f} km to {destination}\n"
            "📞 You'll receive a wake-up call shortly..."
        ),
        # Calls
        "calling_now": "📞 Calling you now to wake you up!",
        "calling_again": (
            "📞 Calling again... (Attempt {attempt_no}/{max_attempts})\n"
            "Send /awake to stop calls."
        ),
        "call_unanswered": (
            "😴 I didn't hear you confirm.\n"
            "Calling again in {minutes} min (attempt {next_attempt}/{max_attempts}).\n"
            "Send /awake to stop calls."
        ),
        "awake_confirmed_call":"✅ Great! You're awake! Have a safe journey! 🎉",
        "calls_exhausted": (
            "🚨 MISSED {max_attempts} CALLS!\n\n"
            "You didn't respond to any wake-up calls.\n"
            "Please check where you are and get ready to get off."
        ),
        "calls_unavailable": (
            "⚠️ I couldn't reach you by phone.\n"
            "Please check where you are and get ready to get off."
        ),
    },
    "tts": {
        "first_message_calm": (
            "Hello! This is your WakeMe travel wake-up call. "
            "You are almost at {destination}. Are you awake?"
        ),
        "first_message_firm": (
            "Wake up! This is call number {attempt_no}. "
            "You're approaching {destination}. Please confirm you're awake!"
        ),
        "first_message_urgent": (
            "URGENT! This is wake-up call number {attempt_no}! "
            "You will miss {destination} if you don't wake up now!"
        ),
        "end_call_message": "Have a safe journey! Goodbye.",
        "system_prompt": (
            "You are a travel wake-up assistant. Your job is to wake up a traveler. "
            "Be {urgency}.\n\n"
            "CONTEXT:\n"
            "- Traveler destination: {destination}\n"
            "- Travel mode: {mode}\n"
            "- Call attempt: {attempt_no} of {max_attempts}\n\n"
            "RULES:\n"
            "1. Speak clearly in Indian English\n"
            "2. Be {urgency} but always polite\n"
            "3. Don't hang up until you hear \"I'm awake\", \"Yes I'm up\", or similar\n"
            "4. If they mumble or say \"hmm\", that's NOT confirmation\n"
            "5. Keep asking until you get clear confirmation\n"
            "6. Maximum 2-3 minutes, then end\n"
            "7. If the traveler is angry, apologize and end"
        ),
        "urgency_calm": "friendly and calm",
        "urgency_firm": "firm but polite",
        "urgency_urgent": "urgent and very insistent",
    },
}


def get_telegram_string(key: str, **kwargs: Any) -> str:
    """Get a Telegram UI string with optional formatting."""
    template: str = UI_STRINGS["telegram"].get(key, key)
    return template.format(**kwargs)


def get_tts_string(key: str, **kwargs: Any) -> str:
    """Get a TTS UI string with optional formatting."""
    template: str = UI_STRINGS["tts"].get(key, key)
    return template.format(**kwargs)
