from __future__ import annotations

from datetime import datetime
from email.message import EmailMessage
import html
import smtplib
from typing import List


def send_alert_email(
    to_addr: str,
    origin_name: str,
    destination_name: str,
    window_start: datetime,
    hours: List[str],
    *,
    smtp_host: str,
    smtp_user: str = "",
    smtp_pass: str = "",
    from_addr: str = "",
    port: int = 465,
    use_tls: bool = False,
) -> None:
    """Tell ``to_addr`` that free seats were found at ``hours``.

    Parameters ``smtp_host``, ``smtp_user`` and ``smtp_pass`` are used for SMTP
    authentication.  Set ``use_tls`` to ``True`` for ``STARTTLS`` connection and
    ``port`` to the appropriate port if different from the default 465.
    SMTP errors are not caught.
    """
    route = f"{origin_name} → {destination_name}"
    day = f"{window_start:%d/%m/%Y}"

    msg = EmailMessage()
    msg["Subject"] = f"\U0001F686 TGVmax disponible – {route} le {day}"
    msg["From"] = from_addr or smtp_user
    msg["To"] = to_addr

    text_body = "\n".join(
        [
            f"Des places TGVmax sont disponibles pour {route} le {day}.",
            "",
            "Départs : " + ", ".join(hours),
        ]
    )

    html_rows = [
        f"<p>Des places TGVmax sont disponibles pour <b>{html.escape(route)}</b>"
        f" le {day}.</p>",
        "<table>",
        "<thead><tr><th>Départ</th></tr></thead>",
        "<tbody>",
    ]
    for hour in hours:
        html_rows.append(f"<tr><td>{html.escape(hour)}</td></tr>")
    html_rows.append("</tbody></table>")
    html_body = "\n".join(html_rows)

    msg.set_content(text_body)
    msg.add_alternative(f"<html><body>{html_body}</body></html>", subtype="html")

    if use_tls:
        with smtplib.SMTP(smtp_host, port) as smtp:
            smtp.starttls()
            if smtp_user:
                smtp.login(smtp_user, smtp_pass)
            smtp.send_message(msg)
    else:
        with smtplib.SMTP_SSL(smtp_host, port) as smtp:
            if smtp_user:
                smtp.login(smtp_user, smtp_pass)
            smtp.send_message(msg)


__all__ = ["send_alert_email"]
