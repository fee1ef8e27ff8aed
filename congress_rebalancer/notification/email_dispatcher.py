"""Email dispatcher for rebalancing recommendations.

Renders an HTML alert with trade details, urgency, portfolio impact and
step-by-step brokerage instructions, and sends it over SMTP to the
configured mailbox (sender and recipient are the same account).
"""

import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from congress_rebalancer.notification.base import NotificationDispatcher
from congress_rebalancer.portfolio.base import (
    Portfolio,
    Recommendation,
    RecommendationAction,
)
from congress_rebalancer.utils.exceptions import NotificationError
from congress_rebalancer.utils.logging import get_logger

logger = get_logger(__name__)


def urgency_label(confidence: float) -> str:
    """Map confidence to how quickly the user should act."""
    if confidence > 0.85:
        return "HIGH - Act within 1 hour"
    if confidence > 0.7:
        return "MEDIUM - Act within 4 hours"
    return "LOW - Act within 24 hours"


class EmailDispatcher(NotificationDispatcher):
    """SMTP email dispatcher.

    Example:
        >>> dispatcher = EmailDispatcher(
        ...     username="me@gmail.com", password="app-password", portfolio=portfolio
        ... )
        >>> dispatcher.send(recommendation)
        True
    """

    def __init__(
        self,
        username: Optional[str],
        password: Optional[str],
        portfolio: Optional[Portfolio] = None,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        timeout: float = 30,
    ):
        """Initialize email dispatcher.

        Args:
            username: SMTP login, also used as sender and recipient
            password: SMTP password (app password for Gmail)
            portfolio: Portfolio used for the impact section (optional)
            smtp_host: SMTP server host
            smtp_port: SMTP server port (STARTTLS)
            timeout: Connection timeout in seconds
        """
        self.username = username
        self.password = password
        self.portfolio = portfolio
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.username)

    def send(self, recommendation: Recommendation) -> bool:
        """Email one recommendation. Failures are logged, not raised."""
        subject = (
            f"{recommendation.action.value} ALERT: {recommendation.ticker} - "
            f"${recommendation.recommended_amount:.0f}"
        )
        try:
            sent = self.send_email(subject, self.render(recommendation))
        except NotificationError as e:
            logger.error("Email failed: %s", e)
            return False

        if sent:
            logger.info(
                "%s alert sent via email for %s: $%.0f",
                recommendation.action.value,
                recommendation.ticker,
                recommendation.recommended_amount,
            )
        return sent

    def send_test(self) -> bool:
        """Send a test message to verify the SMTP settings."""
        try:
            return self.send_email(
                "Bot Test",
                "<h2>Congress Rebalancer is working!</h2>"
                "<p>Email alerts are configured correctly.</p>",
            )
        except NotificationError as e:
            logger.error("Email failed: %s", e)
            return False

    def send_email(self, subject: str, html_body: str) -> bool:
        """Send an HTML email to the configured mailbox.

        Returns:
            True if sent, False if email is not configured

        Raises:
            NotificationError: If the SMTP exchange fails
        """
        if not self.is_configured:
            logger.info("Email not configured, skipping...")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.username
        msg["To"] = self.username
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                if self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send '{subject}': {e}") from e

        logger.info("Email sent: %s", subject)
        return True

    def render(self, recommendation: Recommendation) -> str:
        """Render the HTML body for a recommendation."""
        rec = recommendation
        action = rec.action.value
        is_buy = rec.action == RecommendationAction.BUY
        background = "#e8f5e8" if is_buy else "#ffe8e8"
        color = "#2e7d32" if is_buy else "#d32f2f"

        return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background: {background}; padding: 20px; border-radius: 10px; margin: 20px 0;">
        <h2 style="margin: 0; color: {color};">{action} RECOMMENDATION</h2>
        <h3 style="margin: 10px 0;">{rec.ticker} - {action} ${rec.recommended_amount:.0f}</h3>
      </div>

      <div style="background: #f5f5f5; padding: 20px; border-radius: 10px; margin: 20px 0;">
        <h3>Trade Details</h3>
        <p><strong>Current Price:</strong> ${rec.current_price:.2f}</p>
        <p><strong>Shares to {action.lower()}:</strong> {rec.shares_to_trade:.3f}</p>
        <p><strong>Confidence Level:</strong> {rec.confidence * 100:.0f}%</p>
        <p><strong>Urgency:</strong> {urgency_label(rec.confidence)}</p>
      </div>

      <div style="background: #e3f2fd; padding: 20px; border-radius: 10px; margin: 20px 0;">
        <h3>Analysis</h3>
        <p>{rec.reason}</p>
      </div>
{self._render_impact(rec)}
      <div style="background: #f3e5f5; padding: 20px; border-radius: 10px; margin: 20px 0;">
        <h3>Step-by-Step Instructions</h3>
        <ol style="line-height: 1.8;">
          <li><strong>Open your brokerage app</strong> (Robinhood, Fidelity, Schwab, etc.)</li>
          <li><strong>Search for "{rec.ticker}"</strong></li>
          <li><strong>Choose order type:</strong> Market {"Buy" if is_buy else "Sell"} Order</li>
          <li><strong>Enter amount:</strong>
            <ul>
              <li>Dollar amount: ${rec.recommended_amount:.0f}</li>
              <li>OR Share amount: {rec.shares_to_trade:.3f} shares</li>
            </ul>
          </li>
          <li><strong>Review and submit</strong> the order</li>
          <li><strong>Confirm execution</strong> and update your records</li>
        </ol>
      </div>

      <div style="text-align: center; padding: 20px; color: #666; font-size: 12px;">
        <p>Generated at {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}</p>
        <p>Congress Rebalancer - Following the most successful traders in Congress</p>
      </div>
    </div>
"""

    def _render_impact(self, rec: Recommendation) -> str:
        if self.portfolio is None or not self.portfolio.has_ticker(rec.ticker):
            return ""

        with self.portfolio.lock:
            current_value = self.portfolio.get_position(rec.ticker).current_value
            total_value = self.portfolio.total_value

        signed = rec.recommended_amount if rec.action == RecommendationAction.BUY else -rec.recommended_amount
        after = current_value + signed
        new_allocation = after / total_value * 100 if total_value > 0 else 0.0

        return f"""
      <div style="background: #fff3e0; padding: 20px; border-radius: 10px; margin: 20px 0;">
        <h3>Portfolio Impact</h3>
        <p><strong>Current {rec.ticker} value:</strong> ${current_value:.2f}</p>
        <p><strong>After {rec.action.value}:</strong> ${after:.2f}</p>
        <p><strong>New allocation:</strong> {new_allocation:.1f}%</p>
      </div>
"""
