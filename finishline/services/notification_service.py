"""
FinishLine
Change-request notification service.

Turns change-request lifecycle events into Slack messages:
    - new CR        → project team channel (+ e-board channel for budget > $100)
    - CR reviewed   → DM to the submitter
    - CR decided    → reply + ✅/❌ reaction in every thread posted for the CR

Sending is controlled by the injected ``enabled`` flag (see
``SLACK_NOTIFICATIONS_ENABLED`` in config); when disabled every call is a
no-op. Gateway failures surface as ExternalNotificationError.
"""

import logging

from flask import current_app

from finishline.integrations.slack_gateway import SlackGateway

logger = logging.getLogger(__name__)

# Budget impact (dollars) above which the e-board channel is also notified
EBOARD_BUDGET_THRESHOLD = 100


class ChangeRequestNotifier:
    """Builds change-request messages and hands them to a SlackGateway."""

    def __init__(self, gateway, *, enabled=False, base_url="", eboard_channel=None):
        self.gateway = gateway
        self.enabled = enabled
        self.base_url = base_url.rstrip("/")
        self.eboard_channel = eboard_channel

    def cr_link(self, cr_id):
        return f"{self.base_url}/cr/{cr_id}"

    # ── New change request ───────────────────────────────────────────────

    @staticmethod
    def build_new_cr_message(change_request, submitter, wbs_element, project_name):
        """Summary line for a freshly submitted change request."""
        who = f"{submitter.first_name} {submitter.last_name}"
        if change_request.type == "ACTIVATION":
            return f"{who} wants to activate {wbs_element.name} in {project_name}"
        if change_request.type == "STAGE_GATE":
            return f"{who} wants to stage gate {wbs_element.name} in {project_name}"
        return f"{change_request.type} CR submitted by {who} for the {project_name} project"

    def notify_team(self, team, message, cr_id, budget_impact=None, posted=None):
        """
        Post a new-CR message to the team channel, and to the e-board channel
        when the requested budget exceeds EBOARD_BUDGET_THRESHOLD.

        Each ``{"channel_id", "ts"}`` is appended to ``posted`` as soon as the
        message goes out, so a caller still sees it if a later post fails.

        Returns:
            ``posted`` (a new list when not supplied).
        """
        posted = [] if posted is None else posted
        if not self.enabled:
            return posted
        full_msg = f":tada: New Change Request! :tada: {message}"
        link = self.cr_link(cr_id)
        btn_text = f"View CR #{cr_id}"

        notification = self.gateway.send_message(team.slack_id, full_msg, link, btn_text)
        if notification:
            posted.append(notification)

        if budget_impact and budget_impact > EBOARD_BUDGET_THRESHOLD and self.eboard_channel:
            important = self.gateway.send_message(
                self.eboard_channel,
                f"{full_msg} with ${budget_impact} requested",
                link,
                btn_text,
            )
            if important:
                posted.append(important)
        return posted

    def notify_new_change_request(self, teams, change_request, submitter, wbs_element,
                                  project_name, budget_impact=None, posted=None):
        """Notify every team of a new change request; return all posted threads."""
        message = self.build_new_cr_message(change_request, submitter, wbs_element, project_name)
        threads = [] if posted is None else posted
        for team in teams:
            self.notify_team(team, message, change_request.id, budget_impact, posted=threads)
        logger.info("New CR %s announced in %d slack thread(s)", change_request.id, len(threads))
        return threads

    # ── Review ───────────────────────────────────────────────────────────

    def notify_reviewed(self, slack_id, cr_id):
        """DM the submitter that their change request was reviewed."""
        if not self.enabled or not slack_id:
            return None
        return self.gateway.send_message(
            slack_id,
            ":tada: Your Change Request was just reviewed! Click the link to view! :tada:",
            self.cr_link(cr_id),
            f"View CR#{cr_id}",
        )

    def notify_status_in_threads(self, threads, cr_id, approved):
        """Reply to and react on every thread posted for the change request."""
        if not self.enabled or not threads:
            return
        full_msg = (
            f"This Change Request was {'approved! :tada:' if approved else 'denied.'} "
            "Click the link to view."
        )
        link = self.cr_link(cr_id)
        btn_text = f"View CR#{cr_id}"
        emoji = "white_check_mark" if approved else "x"
        for thread in threads:
            self.gateway.reply_to_message_in_thread(
                thread.channel_id, thread.timestamp, full_msg, link, btn_text,
            )
            self.gateway.react_to_message(thread.channel_id, thread.timestamp, emoji)


def notifier_from_config(config=None):
    """Build a ChangeRequestNotifier from Flask config (current app by default)."""
    config = config if config is not None else current_app.config
    gateway = SlackGateway(token=config.get("SLACK_BOT_TOKEN"))
    return ChangeRequestNotifier(
        gateway,
        enabled=bool(config.get("SLACK_NOTIFICATIONS_ENABLED", False)),
        base_url=config.get("APP_BASE_URL", ""),
        eboard_channel=config.get("SLACK_EBOARD_CHANNEL"),
    )
